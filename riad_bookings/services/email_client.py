"""Resend email client - transport for guest, owner and alert emails."""

import threading
from typing import Any

import httpx
from pydantic import BaseModel

from riad_bookings.config import EmailSettings, get_settings
from riad_bookings.models.booking import SendResult
from riad_bookings.services.errors import ConfigurationError
from riad_bookings.utils.logger import get_logger, mask_email, mask_sensitive

logger = get_logger(__name__)


# =============================================================================
# Models
# =============================================================================


class EmailMessage(BaseModel):
    """Outgoing email."""

    sender: str
    to: list[str]
    subject: str
    html: str
    bcc: list[str] = []
    reply_to: str | None = None
    tags: dict[str, str] = {}

    def to_payload(self) -> dict[str, Any]:
        """Request body for POST /emails."""
        payload: dict[str, Any] = {
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "html": self.html,
        }
        if self.bcc:
            payload["bcc"] = self.bcc
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        if self.tags:
            payload["tags"] = [{"name": k, "value": v} for k, v in self.tags.items()]
        return payload


# =============================================================================
# Exceptions
# =============================================================================


class EmailConfigurationError(ConfigurationError):
    """Email channel is missing required configuration."""

    pass


# =============================================================================
# Resend Client
# =============================================================================


class ResendEmailClient:
    """
    Async client for the Resend REST API.

    ``send`` never raises for delivery problems; callers branch on
    ``SendResult.success``.

    Usage:
        client = ResendEmailClient(api_key="re_...")
        result = await client.send(message)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.resend.com",
        timeout: int = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Resend client.

        Args:
            api_key: Resend API key
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        if not api_key:
            raise EmailConfigurationError("RESEND_API_KEY environment variable is not set")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def send(self, message: EmailMessage) -> SendResult:
        """
        Send one email.

        Args:
            message: Email to deliver

        Returns:
            SendResult with the provider message id or an error
        """
        recipients = [mask_email(address) for address in message.to]

        try:
            response = await self.client.post("/emails", json=message.to_payload())
        except httpx.HTTPError as e:
            logger.error("email_transport_error", to=recipients, error=str(e))
            return SendResult(success=False, error=f"Transport error: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.error(
                "email_rejected",
                to=recipients,
                status=response.status_code,
                error=detail,
            )
            return SendResult(success=False, error=f"HTTP {response.status_code}: {detail}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info("email_sent", to=recipients, message_id=message_id)
        return SendResult(success=True, message_id=message_id)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"ResendEmailClient(base_url={self.base_url!r}, api_key={mask_sensitive(self.api_key)!r})"


# =============================================================================
# Process-wide Handle
# =============================================================================

_client: ResendEmailClient | None = None
_client_lock = threading.Lock()


def get_email_client(settings: EmailSettings | None = None) -> ResendEmailClient:
    """
    Get the shared email client, creating it on first access.

    Raises:
        EmailConfigurationError: If the API key is not configured. Nothing
            is cached in that case, so a later call can succeed.
    """
    global _client
    if _client is not None:
        return _client

    with _client_lock:
        if _client is None:
            email_settings = settings or get_settings().email
            _client = ResendEmailClient(
                api_key=email_settings.api_key.get_secret_value(),
                base_url=email_settings.api_base_url,
                timeout=email_settings.timeout_seconds,
            )
            logger.info("email_client_initialized", client=repr(_client))
    return _client


async def reset_email_client() -> None:
    """Close and forget the shared email client."""
    global _client
    with _client_lock:
        client, _client = _client, None
    if client is not None:
        await client.aclose()
