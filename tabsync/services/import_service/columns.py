"""Column resolution: matching logical fields to arbitrary source headers."""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from tabsync.models.field_mapping import FieldMapping
from tabsync.models.records import EntityKind

from .constants import FIELD_CANDIDATES, MIN_SUBSTRING_LENGTH
from .values import clean_header, fold_text

logger = logging.getLogger(__name__)


def _match_key(text: Any) -> str:
    return fold_text(clean_header(text))


class ColumnResolver:
    """Finds the source column for a logical field.

    Column names are cleaned (BOM and invisible characters removed, trimmed,
    lower-cased, accents folded) once per batch. Resolution is stage-major:
    every candidate is tried as an exact key, then as a case-insensitive
    exact match, then as a case-insensitive substring. Within a stage the
    candidate order decides.

    Remote lists may expose internal column names ("field_3") with display
    names alongside; pass those as ``labels`` and they are matched too.
    """

    def __init__(
        self,
        columns: Iterable[str],
        labels: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.columns = [column for column in columns if column is not None]
        labels = labels or {}
        self._keys = [
            (column, _match_key(column), _match_key(labels.get(column, "")))
            for column in self.columns
        ]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ColumnResolver":
        return cls(list(row.keys()))

    def resolve_column(
        self,
        candidates: Iterable[str],
        exclude: Iterable[str] = (),
        substring: bool = True,
    ) -> Optional[str]:
        """Return the best matching column for the candidates, or None.

        Args:
            candidates: Candidate header keywords, ordered by preference.
            exclude: Columns already claimed by another field.
            substring: Whether to fall back to substring matching.

        Returns:
            The original (uncleaned) column name, or None if nothing matches.
        """
        excluded = set(exclude)
        available = [entry for entry in self._keys if entry[0] not in excluded]
        candidates = [candidate for candidate in candidates if candidate]

        for candidate in candidates:
            for column, _, _ in available:
                if column == candidate:
                    return column

        folded = [_match_key(candidate) for candidate in candidates]
        for key in folded:
            if not key:
                continue
            for column, column_key, label_key in available:
                if key == column_key or (label_key and key == label_key):
                    return column

        if not substring:
            return None

        for key in folded:
            if len(key) < MIN_SUBSTRING_LENGTH:
                continue
            for column, column_key, label_key in available:
                if key in column_key or (label_key and key in label_key):
                    return column

        return None

    def value(
        self,
        row: Mapping[str, Any],
        candidates: Iterable[str],
        explicit: Optional[str] = None,
    ) -> Any:
        """Look up a row value by explicit column or by candidate keywords.

        An explicit column is used verbatim and bypasses the heuristics.
        Never raises; a missing column gives None.
        """
        if explicit:
            return row.get(explicit)
        column = self.resolve_column(candidates)
        if column is None:
            return None
        return row.get(column)


def suggest_field_mapping(
    kind: EntityKind,
    columns: Iterable[str],
    existing: Optional[FieldMapping] = None,
    overwrite: bool = False,
    labels: Optional[Mapping[str, str]] = None,
    source_id: str = "",
) -> FieldMapping:
    """Auto-map logical fields of an entity kind onto source columns.

    Each column is claimed by at most one field. Exact matches for every
    field are settled before any field falls back to a substring match, so
    "name" cannot take "Client Name" from the client field. Within a pass
    fields are visited in declaration order. Fields that already have a
    column in ``existing`` are left alone unless ``overwrite`` is set.

    Args:
        kind: Entity kind whose fields are mapped.
        columns: Column names of the source.
        existing: A previously saved mapping for the same source.
        overwrite: Re-run auto-mapping over every field (user-triggered remap).
        labels: Optional display names for the columns.
        source_id: Source identity for a new mapping.

    Returns:
        A new FieldMapping; ``existing`` is not modified.
    """
    kind = EntityKind(kind)
    fields: dict[str, str] = {}
    if existing is not None and not overwrite:
        fields.update(existing.fields)

    claimed = {column for column in fields.values() if column}
    resolver = ColumnResolver(columns, labels)

    pending = [field for field in FIELD_CANDIDATES[kind] if not fields.get(field)]
    for field in pending:
        fields[field] = ""

    for substring in (False, True):
        for field in pending:
            if fields[field]:
                continue
            column = resolver.resolve_column(
                FIELD_CANDIDATES[kind][field], exclude=claimed, substring=substring
            )
            if column:
                fields[field] = column
                claimed.add(column)

    if existing is not None:
        source_id = existing.source_id

    mapped = sum(1 for column in fields.values() if column)
    logger.debug("Auto-mapped %d of %d %s fields for %s", mapped, len(fields), kind.value, source_id)

    return FieldMapping(
        kind=kind,
        source_id=source_id,
        fields=fields,
        updated_at=datetime.now(timezone.utc),
    )
