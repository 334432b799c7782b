"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Find .env file
# =============================================================================

def find_env_file() -> str:
    """Find the .env file relative to project root."""
    candidates = [
        "config/.env",
        ".env",
        Path(__file__).parent.parent / "config" / ".env",
    ]

    for candidate in candidates:
        path = Path(candidate)
        if path.exists():
            return str(path)

    return "config/.env"  # Default


ENV_FILE = find_env_file()


# =============================================================================
# Settings Classes
# =============================================================================


class LedgerSettings(BaseSettings):
    """OPS ledger (spreadsheet) settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="LEDGER_",
        extra="ignore",
    )

    backend: Literal["sheets", "workbook"] = "workbook"

    # Google Sheets backend
    spreadsheet_id: str = ""
    sheet_range: str = "Master_Guests!A:AB"
    access_token: SecretStr = SecretStr("")
    # OAuth refresh credentials; preferred over a fixed access_token
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    refresh_token: SecretStr = SecretStr("")
    token_uri: str = "https://oauth2.googleapis.com/token"
    api_base_url: str = "https://sheets.googleapis.com"
    timeout_seconds: int = 30

    # Local workbook backend
    workbook_path: str = "data/ops_ledger.xlsx"
    workbook_sheet: str = "Master_Guests"


class EmailSettings(BaseSettings):
    """Resend transactional email settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="RESEND_",
        extra="ignore",
    )

    api_key: SecretStr = SecretStr("")
    api_base_url: str = "https://api.resend.com"
    from_address: str = "Riad di Siena <operations@mail.riaddisiena.com>"
    owner_address: str = "happy@riaddisiena.com"
    timeout_seconds: int = 15


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    # Bookings
    default_property: str = "Riad di Siena"
    ledger_max_attempts: int = 3
    ledger_base_delay_seconds: float = 1.0

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["https://riaddisiena.com", "http://localhost:3000"]

    @field_validator("ledger_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Ledger max attempts must be at least 1")
        return v

    @field_validator("ledger_base_delay_seconds")
    @classmethod
    def validate_base_delay(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Ledger base delay must be positive")
        return v


class Settings(BaseSettings):
    """Main settings container with lazy loading."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache for sub-settings
    _ledger: LedgerSettings | None = None
    _email: EmailSettings | None = None
    _app: AppSettings | None = None

    @property
    def ledger(self) -> LedgerSettings:
        if self._ledger is None:
            self._ledger = LedgerSettings()
        return self._ledger

    @property
    def email(self) -> EmailSettings:
        if self._email is None:
            self._email = EmailSettings()
        return self._email

    @property
    def app(self) -> AppSettings:
        if self._app is None:
            self._app = AppSettings()
        return self._app

    # Convenience accessors
    @property
    def resend_api_key(self) -> str:
        return self.email.api_key.get_secret_value()

    @property
    def owner_address(self) -> str:
        return self.email.owner_address

    @property
    def ledger_access_token(self) -> str:
        return self.ledger.access_token.get_secret_value()

    @property
    def default_property(self) -> str:
        return self.app.default_property


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
