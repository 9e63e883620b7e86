"""Configuration package."""

from src.config.settings import (
    AppSettings,
    MongoSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "MongoSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
