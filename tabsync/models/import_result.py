"""ImportResult model summarising one import batch."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from tabsync.models.records import EntityKind


class ImportStatus(str, Enum):
    """Status of an import batch."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportResult(BaseModel):
    """Outcome of one import batch: counts plus the merged collection."""

    kind: EntityKind
    source_id: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: ImportStatus = ImportStatus.PENDING

    # Row counts
    rows_read: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    filtered: int = 0

    # Fields that fell back to a default value across the whole batch
    degraded: int = 0

    # Records that could not be written to the remote sink
    write_failures: int = 0

    # Merged collection (existing records plus this batch)
    records: list[Any] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def summary(self) -> str:
        """Human-readable one-line summary for confirmation messages."""
        parts = [
            f"{self.added} added",
            f"{self.updated} updated",
            f"{self.skipped} skipped",
            f"{self.failed} failed",
        ]
        if self.filtered:
            parts.append(f"{self.filtered} filtered out")
        if self.write_failures:
            parts.append(f"{self.write_failures} not saved")
        return ", ".join(parts)
