"""Configuration package."""

from budgetbuddy.config.settings import (
    GeminiSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    MonthMatching,
    Settings,
    StorageBackend,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GeminiSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "MonthMatching",
    "Settings",
    "StorageBackend",
    "get_settings",
    "validate_all_settings",
]
