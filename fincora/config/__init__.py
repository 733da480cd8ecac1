"""Configuration package."""

from fincora.config.settings import (
    AppSettings,
    LedgerSettings,
    ParserServiceSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "ParserServiceSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
