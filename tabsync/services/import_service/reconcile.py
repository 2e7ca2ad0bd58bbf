"""Merging a mapped batch into an existing record collection.

Matching order per incoming record:

1. External reference: an existing record of the same kind with the same
   ``external_ref``, else one whose PO number equals the reference or whose
   notes contain it (records made by older imports that kept the reference
   inline). A match is updated in place, keeping the existing id.
2. Semantic key (no reference, or a lead whose reference matched
   nothing): lead email, project name + client, purchase PO + description
   + day, ticket title + client. A match is a duplicate: skipped, or
   enriched when the merge policy allows it.
3. Otherwise the record is added.

The input collection and its records are never mutated; a new list is
returned. Rows are applied in order, so later rows win.
"""

import logging
from typing import Any, Hashable, Iterable, NamedTuple, Optional, Union

from tabsync.models.records import RECORD_MODELS, CanonicalModel, EntityKind

from .converters import MappedRow
from .values import normalize_email

logger = logging.getLogger(__name__)

# References shorter than this are only matched exactly, never inside notes
MIN_NOTES_REF_LENGTH = 3

# Fallback reference lookups: substring of free text, whole value of PO number
REF_TEXT_FIELDS = ("notes",)
REF_EXACT_FIELDS = ("po_number",)

# Fields never copied from an incoming record onto an existing one
PRESERVED_FIELDS = frozenset({"id"})

# Kinds whose referenced records still dedup by semantic key when the
# reference itself matches nothing
REF_KEYED_KINDS = frozenset({EntityKind.LEAD})


class MergePolicy(NamedTuple):
    """Per-kind merge behaviour for semantic-key duplicates."""

    enrich: bool = False


DEFAULT_POLICIES: dict[EntityKind, MergePolicy] = {
    EntityKind.PROJECT: MergePolicy(),
    EntityKind.TICKET: MergePolicy(),
    EntityKind.LEAD: MergePolicy(),
    EntityKind.PURCHASE: MergePolicy(),
}


class ReconcileOutcome(NamedTuple):
    """Merged collection and the counts shown to the user."""

    records: list[Any]
    added: int
    updated: int
    skipped: int
    changed: list[Any]


def _as_mapped(item: Union[MappedRow, CanonicalModel]) -> MappedRow:
    if isinstance(item, MappedRow):
        return item
    return MappedRow(item, frozenset(item.model_fields_set))


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (int, float)) and value == 0)


def semantic_key(kind: EntityKind, mapped: MappedRow) -> Optional[Hashable]:
    """Content key used to spot duplicates of records without a reference.

    Returns None when the record carries too little source data to compare.
    """
    record = mapped.record
    provided = mapped.provided

    if kind == EntityKind.LEAD:
        email = normalize_email(record.email)
        return ("email", email) if email else None
    if kind == EntityKind.PROJECT:
        if "name" not in provided:
            return None
        return ("project", record.name.strip().lower(), record.client.strip().lower())
    if kind == EntityKind.PURCHASE:
        if not (record.po_number or record.item_description):
            return None
        return (
            "purchase",
            record.po_number.strip().lower(),
            record.item_description.strip().lower(),
            record.date.date(),
        )
    if kind == EntityKind.TICKET:
        if "title" not in provided:
            return None
        return ("ticket", record.title.strip().lower(), record.client_name.strip().lower())
    return None


def _existing_key(kind: EntityKind, record: Any) -> Optional[Hashable]:
    # Existing records are compared on everything they hold
    return semantic_key(kind, MappedRow(record, frozenset(type(record).model_fields)))


def find_by_ref(records: list[Any], ref: str, model: type) -> Optional[int]:
    """Return the position of the record matching an external reference."""
    for position, record in enumerate(records):
        if isinstance(record, model) and record.external_ref == ref:
            return position

    if len(ref) < MIN_NOTES_REF_LENGTH:
        return None
    needle = ref.strip().lower()
    for position, record in enumerate(records):
        if not isinstance(record, model):
            continue
        for field in REF_EXACT_FIELDS:
            if (getattr(record, field, None) or "").strip().lower() == needle:
                return position
        for field in REF_TEXT_FIELDS:
            if needle in (getattr(record, field, None) or "").lower():
                return position
    return None


def apply_update(existing: Any, mapped: MappedRow) -> Any:
    """Overwrite the fields the source provided, keeping the existing id."""
    record = mapped.record
    update = {
        field: getattr(record, field)
        for field in mapped.provided
        if field in type(existing).model_fields and field not in PRESERVED_FIELDS
    }
    update["external_ref"] = record.external_ref
    return existing.model_copy(update=update)


def apply_enrichment(existing: Any, mapped: MappedRow) -> Any:
    """Fill only the fields that are empty on the existing record."""
    record = mapped.record
    update = {
        field: getattr(record, field)
        for field in mapped.provided
        if field in type(existing).model_fields
        and field not in PRESERVED_FIELDS
        and _is_empty(getattr(existing, field))
        and not _is_empty(getattr(record, field))
    }
    if not update:
        return existing
    return existing.model_copy(update=update)


def reconcile(
    kind: EntityKind,
    incoming: Iterable[Union[MappedRow, CanonicalModel]],
    existing: Iterable[Any],
    policy: Optional[MergePolicy] = None,
) -> ReconcileOutcome:
    """Merge a batch of mapped records into an existing collection.

    Args:
        kind: Entity kind of the batch.
        incoming: MappedRow results, or bare records (whose explicitly set
            fields are treated as provided).
        existing: The current collection. Not modified.
        policy: Merge policy; defaults to the kind's policy.

    Returns:
        ReconcileOutcome with the new collection, the counts and the
        records that were added or changed (for writing to a sink).
    """
    kind = EntityKind(kind)
    policy = policy or DEFAULT_POLICIES[kind]
    model = RECORD_MODELS[kind]

    records = list(existing)
    keys: dict[Hashable, int] = {}
    for position, record in enumerate(records):
        if isinstance(record, model):
            key = _existing_key(kind, record)
            if key is not None:
                keys.setdefault(key, position)

    added = updated = skipped = 0
    changed: dict[int, None] = {}

    for item in incoming:
        mapped = _as_mapped(item)
        record = mapped.record
        key = semantic_key(kind, mapped)

        if record.external_ref:
            position = find_by_ref(records, record.external_ref, model)
            if position is not None:
                records[position] = apply_update(records[position], mapped)
                updated += 1
                changed[position] = None
                continue
        if key is not None and key in keys and (
            not record.external_ref or kind in REF_KEYED_KINDS
        ):
            position = keys[key]
            if policy.enrich:
                enriched = apply_enrichment(records[position], mapped)
                if enriched is not records[position]:
                    records[position] = enriched
                    updated += 1
                    changed[position] = None
                    continue
            logger.debug("Skipping duplicate %s %s", kind.value, record.id)
            skipped += 1
            continue

        records.append(record)
        position = len(records) - 1
        if key is not None:
            keys.setdefault(key, position)
        added += 1
        changed[position] = None

    return ReconcileOutcome(
        records=records,
        added=added,
        updated=updated,
        skipped=skipped,
        changed=[records[position] for position in changed],
    )
