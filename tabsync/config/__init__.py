"""TabSync configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/tabsync/config.toml (user config)
4. /etc/tabsync/config.toml (system config)

Secrets are loaded from secrets.env files in the same directories.
"""

from tabsync.config.schema import (
    ImportConfig,
    LoggingConfig,
    RemoteConfig,
    SecretsConfig,
    StorageConfig,
    TabSyncConfig,
)
from tabsync.config.settings import Settings, get_settings, reset_settings, settings

__all__ = [
    "ImportConfig",
    "LoggingConfig",
    "RemoteConfig",
    "SecretsConfig",
    "Settings",
    "StorageConfig",
    "TabSyncConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
