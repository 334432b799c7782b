"""Google OAuth 2.0 access tokens for the Sheets API."""

import asyncio
import time
from typing import Callable

import httpx

from riad_bookings.services.errors import BookingServiceError
from riad_bookings.utils.logger import get_logger, mask_sensitive

logger = get_logger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleAuthError(BookingServiceError):
    """Token endpoint refused the refresh."""

    pass


class GoogleTokenProvider:
    """
    Exchanges a long-lived refresh token for short-lived access tokens.

    The current access token is cached with its expiry and renewed
    ``refresh_margin_seconds`` before it runs out, or immediately after
    ``invalidate()`` (e.g. when the API answers 401).

    Usage:
        provider = GoogleTokenProvider(client_id, client_secret, refresh_token)
        token = await provider.get_token()
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_uri: str = GOOGLE_TOKEN_URI,
        timeout: int = 30,
        refresh_margin_seconds: int = 300,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = client_id
        self.token_uri = token_uri
        self.timeout = timeout
        self.refresh_margin_seconds = refresh_margin_seconds
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._transport = transport
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self._client_secret and self._refresh_token)

    def _is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and self._clock() < self._expires_at - self.refresh_margin_seconds
        )

    def invalidate(self) -> None:
        """Forget the cached token so the next call refreshes."""
        self._access_token = None
        self._expires_at = 0.0

    async def get_token(self) -> str:
        """
        Return a valid access token, refreshing when needed.

        Raises:
            GoogleAuthError: Token endpoint returned an error status
            httpx.HTTPError: On transport failures
        """
        async with self._lock:
            if not self._is_fresh():
                await self._refresh()
            return self._access_token

    async def _refresh(self) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.token_uri,
                data={
                    "client_id": self.client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(
                "google_token_refresh_failed",
                status=response.status_code,
                body=response.text[:200],
            )
            raise GoogleAuthError(f"Token refresh failed with HTTP {response.status_code}")

        data = response.json()
        expires_in = data.get("expires_in", 3600)
        self._access_token = data["access_token"]
        self._expires_at = self._clock() + expires_in

        logger.info(
            "google_token_refreshed",
            token=mask_sensitive(self._access_token),
            expires_in=expires_in,
        )
