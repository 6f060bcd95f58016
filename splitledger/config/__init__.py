"""Configuration package."""

from splitledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    ReminderSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "ReminderSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
