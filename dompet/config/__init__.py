"""Configuration package."""

from dompet.config.settings import (
    AppSettings,
    ConfigurationError,
    DispatchSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    SchedulerSettings,
    Settings,
    TelegramSettings,
    get_settings,
    parse_clock,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ConfigurationError",
    "DispatchSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "SchedulerSettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
    "parse_clock",
    "validate_all_settings",
]
