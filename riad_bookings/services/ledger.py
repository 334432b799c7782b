"""OPS ledger writers - append confirmed bookings to the guest spreadsheet."""

import asyncio
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from riad_bookings.config import LedgerSettings, get_settings
from riad_bookings.models.booking import OPS_SHEET_COLUMNS, BookingRecord
from riad_bookings.services.errors import BookingServiceError, ConfigurationError
from riad_bookings.services.google_auth import GoogleTokenProvider
from riad_bookings.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Interface & Exceptions
# =============================================================================


class LedgerWriter(Protocol):
    """
    Durable store for confirmed bookings.

    ``append`` returns True once the row is committed. False or any
    exception is a failed attempt and may be retried.
    """

    name: str

    async def append(self, record: BookingRecord) -> bool: ...


class LedgerWriteError(BookingServiceError):
    """Ledger did not confirm the write."""

    def __init__(self, message: str, booking_id: str | None = None):
        super().__init__(message)
        self.booking_id = booking_id


class LedgerConfigurationError(ConfigurationError):
    """Ledger backend is missing required configuration."""

    pass


# =============================================================================
# Google Sheets
# =============================================================================


class SheetsLedgerWriter:
    """
    Appends rows to a Google Sheets worksheet via the values:append API.

    Authenticates with either a fixed bearer token or a
    GoogleTokenProvider. With a provider, a 401 response drops the cached
    token and the request is sent once more with a fresh one.

    Usage:
        writer = SheetsLedgerWriter(spreadsheet_id, "Master_Guests!A:AB", token)
        committed = await writer.append(record)
    """

    name = "sheets"

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_range: str,
        access_token: str = "",
        base_url: str = "https://sheets.googleapis.com",
        timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
        token_provider: GoogleTokenProvider | None = None,
    ):
        """
        Initialize Sheets writer.

        Args:
            spreadsheet_id: Target spreadsheet
            sheet_range: A1 range of the guest table (e.g. Master_Guests!A:AB)
            access_token: Fixed OAuth2 bearer token with spreadsheets scope
            base_url: Sheets API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
            token_provider: Refreshing token source, preferred over access_token
        """
        if not spreadsheet_id or not (access_token or token_provider):
            raise LedgerConfigurationError(
                "LEDGER_SPREADSHEET_ID and LEDGER_ACCESS_TOKEN (or LEDGER_REFRESH_TOKEN) "
                "must be set for the sheets backend"
            )

        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self._token_provider = token_provider
        self._transport = transport

    @property
    def append_url(self) -> str:
        return (
            f"{self.base_url}/v4/spreadsheets/{self.spreadsheet_id}"
            f"/values/{quote(self.sheet_range, safe='')}:append"
        )

    async def _bearer_token(self) -> str:
        if self._token_provider is not None:
            return await self._token_provider.get_token()
        return self._access_token

    async def _post_row(self, client: httpx.AsyncClient, body: dict) -> httpx.Response:
        token = await self._bearer_token()
        return await client.post(
            self.append_url,
            params={
                "valueInputOption": "USER_ENTERED",
                "insertDataOption": "INSERT_ROWS",
            },
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def append(self, record: BookingRecord) -> bool:
        """
        Append one booking row.

        Returns:
            True when the API reports an updated row, False on an error status

        Raises:
            httpx.HTTPError: On transport failures
            GoogleAuthError: When the access token cannot be refreshed
        """
        body = {"values": [record.to_ops_row()]}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await self._post_row(client, body)

            if response.status_code == 401 and self._token_provider is not None:
                logger.info("sheets_token_rejected", booking_id=record.booking_id)
                self._token_provider.invalidate()
                response = await self._post_row(client, body)

        if response.status_code != 200:
            logger.error(
                "sheets_append_rejected",
                booking_id=record.booking_id,
                status=response.status_code,
                body=response.text[:200],
            )
            return False

        updated_rows = response.json().get("updates", {}).get("updatedRows", 0)
        logger.debug(
            "sheets_append_response",
            booking_id=record.booking_id,
            updated_rows=updated_rows,
        )
        return updated_rows >= 1


# =============================================================================
# Local Workbook
# =============================================================================


class WorkbookLedgerWriter:
    """
    Appends rows to a local .xlsx workbook.

    Used when no Sheets credentials are available (development, single-host
    installs). Writes within one process are serialized.
    """

    name = "workbook"

    HEADER_FONT = Font(bold=True, color="FFFFFF")
    HEADER_FILL = PatternFill(start_color="4A5043", end_color="4A5043", fill_type="solid")

    def __init__(self, path: str | Path, sheet_name: str = "Master_Guests"):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self._lock = asyncio.Lock()

    def _create_workbook(self) -> Workbook:
        wb = Workbook()
        ws = wb.active
        ws.title = self.sheet_name
        ws.append(list(OPS_SHEET_COLUMNS))
        for col, _ in enumerate(OPS_SHEET_COLUMNS, 1):
            cell = ws.cell(row=1, column=col)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            ws.column_dimensions[get_column_letter(col)].width = 16
        ws.freeze_panes = "A2"
        return wb

    def _append_sync(self, row: list) -> int:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.path.exists():
            wb = load_workbook(self.path)
            if self.sheet_name in wb.sheetnames:
                ws = wb[self.sheet_name]
            else:
                ws = wb.create_sheet(self.sheet_name)
                ws.append(list(OPS_SHEET_COLUMNS))
        else:
            wb = self._create_workbook()
            ws = wb[self.sheet_name]

        ws.append(row)
        wb.save(self.path)
        return ws.max_row

    async def append(self, record: BookingRecord) -> bool:
        """Append one booking row; returns True once the file is saved."""
        async with self._lock:
            row_number = await asyncio.to_thread(self._append_sync, record.to_ops_row())

        logger.debug(
            "workbook_row_appended",
            booking_id=record.booking_id,
            path=str(self.path),
            row=row_number,
        )
        return True


# =============================================================================
# Factory
# =============================================================================


def create_ledger_writer(settings: LedgerSettings | None = None) -> LedgerWriter:
    """
    Create the configured ledger writer.

    Args:
        settings: Ledger settings (from config if not provided)

    Returns:
        SheetsLedgerWriter or WorkbookLedgerWriter
    """
    settings = settings or get_settings().ledger

    if settings.backend == "sheets":
        provider = None
        if settings.refresh_token.get_secret_value():
            provider = GoogleTokenProvider(
                client_id=settings.client_id,
                client_secret=settings.client_secret.get_secret_value(),
                refresh_token=settings.refresh_token.get_secret_value(),
                token_uri=settings.token_uri,
                timeout=settings.timeout_seconds,
            )
            if not provider.is_configured:
                raise LedgerConfigurationError(
                    "LEDGER_CLIENT_ID and LEDGER_CLIENT_SECRET must be set with LEDGER_REFRESH_TOKEN"
                )

        return SheetsLedgerWriter(
            spreadsheet_id=settings.spreadsheet_id,
            sheet_range=settings.sheet_range,
            access_token=settings.access_token.get_secret_value(),
            base_url=settings.api_base_url,
            timeout=settings.timeout_seconds,
            token_provider=provider,
        )

    return WorkbookLedgerWriter(
        path=settings.workbook_path,
        sheet_name=settings.workbook_sheet,
    )
