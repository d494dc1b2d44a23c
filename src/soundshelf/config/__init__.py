"""Configuration module for SoundShelf."""

from .settings import (
    DEFAULT_JWT_SECRET,
    ApiSettings,
    AuthSettings,
    DatabaseSettings,
    ObservabilitySettings,
    RateLimitSettings,
    Settings,
    StorageSettings,
    get_settings,
    parse_duration,
)

__all__ = [
    "DEFAULT_JWT_SECRET",
    "ApiSettings",
    "AuthSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "RateLimitSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "parse_duration",
]
