"""Configuration package for runtime settings and startup validation."""

from .log_setup import config_configure_logging
from .settings import (
    AppSettings,
    ServiceSettings,
    SettingsLoadError,
    config_load_settings,
    config_normalize_key,
    config_read_file,
)

__all__ = [
    "AppSettings",
    "ServiceSettings",
    "SettingsLoadError",
    "config_configure_logging",
    "config_load_settings",
    "config_normalize_key",
    "config_read_file",
]
