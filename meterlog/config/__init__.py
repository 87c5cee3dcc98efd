"""Configuration package."""

from meterlog.config.preferences import PreferencesError, PreferencesStore
from meterlog.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "PreferencesError",
    "PreferencesStore",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
