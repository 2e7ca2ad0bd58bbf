"""Pydantic models for TabSync configuration.

These models define the structure of config.toml and secrets.env files.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ImportConfig(BaseModel):
    """Defaults and limits applied while mapping and reconciling rows."""

    max_rows: int = 5000
    default_labor_rate: float = 75.0
    default_address: str = "Miami, FL"
    default_city: str = "Miami"
    # Keep only rows whose mapped "area" equals the target (projects only)
    apply_region_filter: bool = False
    region_filter_target: str = "USA"
    # Throttle for remote writes
    write_chunk_size: int = 5
    write_chunk_delay: float = 0.5


class RemoteConfig(BaseModel):
    """Remote list service configuration."""

    base_url: str = "https://graph.microsoft.com/v1.0"
    page_size: int = 499
    timeout_seconds: float = 30.0


class StorageConfig(BaseModel):
    """Local storage configuration."""

    data_dir: Path = Field(default_factory=lambda: Path("data"))
    mappings_file: str = "field_mappings.json"

    @property
    def mappings_path(self) -> Path:
        """Get the field mapping store path."""
        return self.data_dir / self.mappings_file


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class TabSyncConfig(BaseModel):
    """Main TabSync configuration loaded from config.toml."""

    app_name: str = "TabSync"
    imports: ImportConfig = Field(default_factory=ImportConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class SecretsConfig(BaseModel):
    """Secrets loaded from secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    remote_access_token: str | None = None
    webhook_url: str | None = None
