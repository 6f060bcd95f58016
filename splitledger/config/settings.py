"""
Configuration Management for splitledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Money formatting, invite tokens, reminder wording and the storage backend
are all tuned from the environment and validated at startup.
"""

import decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Rounding modes accepted by the decimal module
ROUNDING_MODES = {
    "ROUND_HALF_EVEN": decimal.ROUND_HALF_EVEN,
    "ROUND_HALF_UP": decimal.ROUND_HALF_UP,
    "ROUND_HALF_DOWN": decimal.ROUND_HALF_DOWN,
    "ROUND_UP": decimal.ROUND_UP,
    "ROUND_DOWN": decimal.ROUND_DOWN,
    "ROUND_CEILING": decimal.ROUND_CEILING,
    "ROUND_FLOOR": decimal.ROUND_FLOOR,
    "ROUND_05UP": decimal.ROUND_05UP,
}


class LedgerSettings(BaseSettings):
    """Money handling and group invite configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    currency_code: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code used when formatting amounts"
    )
    decimal_places: int = Field(
        default=2,
        ge=0,
        le=6,
        description="Decimal places shown when formatting amounts"
    )
    rounding: str = Field(
        default="ROUND_HALF_EVEN",
        description="decimal rounding mode applied at output formatting only"
    )
    invite_token_length: int = Field(
        default=10,
        ge=6,
        le=64,
        description="Length of generated group invite tokens"
    )

    @field_validator('rounding')
    @classmethod
    def validate_rounding(cls, v: str) -> str:
        """Only accept rounding modes the decimal module knows."""
        v = v.strip().upper()
        if v not in ROUNDING_MODES:
            raise ValueError(
                f"Unsupported rounding mode: {v}. Allowed: {sorted(ROUNDING_MODES)}"
            )
        return v

    @property
    def rounding_mode(self) -> str:
        """Get the decimal module constant for the configured rounding."""
        return ROUNDING_MODES[self.rounding]


class ReminderSettings(BaseSettings):
    """Payment reminder report configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REMINDER_",
        extra="ignore"
    )

    app_name: str = Field(
        default="Splitr",
        description="Product name shown in reminder reports"
    )
    subject: str = Field(
        default="You have pending payments on Splitr",
        description="Subject line for reminder messages"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    users_sheet_name: str = Field(default="Users")
    groups_sheet_name: str = Field(default="Groups")
    expenses_sheet_name: str = Field(default="Expenses")
    settlements_sheet_name: str = Field(default="Settlements")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    use_storage: bool = Field(
        default=True,
        description="Connect to Google Sheets on startup"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def reminders(self) -> ReminderSettings:
        return ReminderSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "reminders", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
