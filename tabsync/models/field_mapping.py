"""FieldMapping model: logical field name -> source column name."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tabsync.models.records import EntityKind


class FieldMapping(BaseModel):
    """Column mapping for one entity kind and one source.

    An empty string means the logical field is unmapped. Non-empty entries
    are treated as a prior choice and are kept by auto-mapping unless the
    user asks for a full remap.
    """

    kind: EntityKind
    source_id: str
    fields: dict[str, str] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def storage_key(self) -> str:
        """Key under which this mapping is persisted."""
        return mapping_key(self.kind, self.source_id)

    def column_for(self, field: str) -> Optional[str]:
        """Return the mapped column for a logical field, or None if unset."""
        column = self.fields.get(field, "")
        return column or None

    def mapped_fields(self) -> dict[str, str]:
        """Return only the logical fields that have a column."""
        return {field: column for field, column in self.fields.items() if column}


def mapping_key(kind: EntityKind, source_id: str) -> str:
    """Build the persistence key for a kind/source pair."""
    return f"{EntityKind(kind).value}::{source_id}"
