"""Configuration loader for TabSync.

Loads configuration from TOML files and secrets from .env files.
Environment variables can override any configuration value.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from tabsync.config.schema import SecretsConfig, TabSyncConfig

logger = logging.getLogger(__name__)

# Env var -> (section, key)
ENV_MAPPINGS: dict[str, tuple[str, str]] = {
    # Imports
    "IMPORTS_MAX_ROWS": ("imports", "max_rows"),
    "IMPORTS_DEFAULT_LABOR_RATE": ("imports", "default_labor_rate"),
    "IMPORTS_DEFAULT_ADDRESS": ("imports", "default_address"),
    "IMPORTS_DEFAULT_CITY": ("imports", "default_city"),
    "IMPORTS_APPLY_REGION_FILTER": ("imports", "apply_region_filter"),
    "IMPORTS_REGION_FILTER_TARGET": ("imports", "region_filter_target"),
    "IMPORTS_WRITE_CHUNK_SIZE": ("imports", "write_chunk_size"),
    "IMPORTS_WRITE_CHUNK_DELAY": ("imports", "write_chunk_delay"),
    "REGION_FILTER": ("imports", "region_filter_target"),  # Shorthand
    # Remote
    "REMOTE_BASE_URL": ("remote", "base_url"),
    "REMOTE_PAGE_SIZE": ("remote", "page_size"),
    "REMOTE_TIMEOUT_SECONDS": ("remote", "timeout_seconds"),
    # Storage
    "STORAGE_DATA_DIR": ("storage", "data_dir"),
    "STORAGE_MAPPINGS_FILE": ("storage", "mappings_file"),
    "DATA_DIR": ("storage", "data_dir"),  # Shorthand
    # Logging
    "LOGGING_LEVEL": ("logging", "level"),
    "LOG_LEVEL": ("logging", "level"),  # Shorthand
}

INT_KEYS = {"max_rows", "write_chunk_size", "page_size"}
FLOAT_KEYS = {"default_labor_rate", "write_chunk_delay", "timeout_seconds"}
BOOL_KEYS = {"apply_region_filter"}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/tabsync/config.toml (user config)
    3. /etc/tabsync/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "tabsync" / "config.toml",
        Path("/etc/tabsync/config.toml"),
    ]


def get_secrets_search_paths() -> list[Path]:
    """Get the list of paths to search for secrets files.

    Same directories and priority as get_config_search_paths().
    """
    return [
        Path.cwd() / "secrets.env",
        Path.home() / ".config" / "tabsync" / "secrets.env",
        Path("/etc/tabsync/secrets.env"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug(f"Found config file: {path}")
            return path
    return None


def find_secrets_file() -> Path | None:
    """Find the first existing secrets file from search paths."""
    for path in get_secrets_search_paths():
        if path.exists() and path.is_file():
            logger.debug(f"Found secrets file: {path}")
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a simple .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    env_vars: dict[str, str] = {}

    with open(path) as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            env_vars[key] = value

    return env_vars


def _coerce_env_value(key: str, value: str) -> Any:
    if key in INT_KEYS:
        return int(value)
    if key in FLOAT_KEYS:
        return float(value)
    if key in BOOL_KEYS:
        return value.lower() in ("true", "1", "yes")
    return value


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "TABSYNC") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - TABSYNC_IMPORTS_MAX_ROWS -> config_dict["imports"]["max_rows"]
    - TABSYNC_REMOTE_BASE_URL -> config_dict["remote"]["base_url"]
    - etc.

    Note: This modifies config_dict in place.
    """
    for suffix, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(f"{prefix}_{suffix}")
        if value is None:
            continue
        config_dict.setdefault(section, {})
        config_dict[section][key] = _coerce_env_value(key, value)


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from environment variables and optional secrets.env file.

    Environment variables take precedence over file values.
    """
    key_mapping = {
        "TABSYNC_REMOTE_ACCESS_TOKEN": "remote_access_token",
        "TABSYNC_WEBHOOK_URL": "webhook_url",
    }
    secrets_dict: dict[str, str | None] = {}

    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info(f"Loading secrets from: {secrets_file}")
        file_secrets = parse_env_file(secrets_file)
        for file_key, config_key in key_mapping.items():
            if file_key in file_secrets:
                secrets_dict[config_key] = file_secrets[file_key]

    for env_var, config_key in key_mapping.items():
        value = os.environ.get(env_var)
        if value:
            secrets_dict[config_key] = value

    return SecretsConfig(**secrets_dict)


def load_config(config_file: Path | None = None) -> TabSyncConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        TabSyncConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info(f"Loading config from: {config_file}")
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return TabSyncConfig(**config_dict)
