"""Global settings instance for TabSync.

This module provides a unified settings object that combines:
- Configuration from config.toml
- Secrets from secrets.env
- Environment variable overrides
"""

import logging
from pathlib import Path

from tabsync.config.loader import load_config, load_secrets
from tabsync.config.schema import ImportConfig, RemoteConfig, SecretsConfig, TabSyncConfig

logger = logging.getLogger(__name__)


class Settings:
    """Unified settings object combining config and secrets.

    Exposes the structured sections plus a flat interface for the values
    the import engine reads most often.
    """

    def __init__(
        self,
        config: TabSyncConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        """Initialize settings.

        Args:
            config: Optional TabSyncConfig instance. If not provided, loads from file.
            secrets: Optional SecretsConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()
        self._secrets = secrets or load_secrets()

    @property
    def config(self) -> TabSyncConfig:
        """Get the full configuration object."""
        return self._config

    @property
    def secrets(self) -> SecretsConfig:
        """Get the secrets configuration object."""
        return self._secrets

    # Application
    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def log_level(self) -> str:
        return self._config.logging.level

    # Imports
    @property
    def imports(self) -> ImportConfig:
        return self._config.imports

    @property
    def max_rows(self) -> int:
        return self._config.imports.max_rows

    # Remote
    @property
    def remote(self) -> RemoteConfig:
        return self._config.remote

    # Storage
    @property
    def data_dir(self) -> Path:
        return self._config.storage.data_dir

    @property
    def mappings_path(self) -> Path:
        return self._config.storage.mappings_path

    # Secrets
    @property
    def remote_access_token(self) -> str | None:
        return self._secrets.remote_access_token

    @property
    def webhook_url(self) -> str | None:
        return self._secrets.webhook_url


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
