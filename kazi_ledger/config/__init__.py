"""Configuration package."""

from kazi_ledger.config.settings import (
    AppSettings,
    ExtractorSettings,
    GeminiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExtractorSettings",
    "GeminiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
