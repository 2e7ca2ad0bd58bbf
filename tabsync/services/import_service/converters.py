"""Row conversion: one raw row in, one canonical record out.

Each entity kind has a ``row_to_*`` builder that reads logical fields
through a FieldMapping, parses them with the value parsers and applies
the kind's defaults. ``map_row`` wraps the builders with the row filter,
id derivation and model validation.
"""

import logging
import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Optional

from pydantic import ValidationError

from tabsync.config.schema import ImportConfig
from tabsync.models.field_mapping import FieldMapping
from tabsync.models.records import RECORD_MODELS, CanonicalModel, EntityKind

from .columns import suggest_field_mapping
from .constants import ENTITY_DEFAULTS, ID_PREFIXES, IMAGE_URL_PREFIXES, UNKNOWN_PROJECT
from .errors import RowMappingFailure
from .values import (
    ParseResult,
    is_blank,
    normalize_email,
    normalize_supplier,
    normalize_text,
    parse_count_result,
    parse_currency_result,
    parse_date_result,
)
from .vocabulary import (
    LEAD_STATUS,
    PROJECT_STATUS,
    PURCHASE_CATEGORY,
    TICKET_STATUS,
    TICKET_TYPE,
    VocabularyTable,
)

logger = logging.getLogger(__name__)

RawRow = Mapping[str, Any]


class RowFilter(NamedTuple):
    """Keep only rows whose ``field`` equals ``target`` (trimmed, upper-cased)."""

    field: str
    target: str

    def matches(self, value: Any) -> bool:
        return normalize_text(value).upper() == self.target.strip().upper()


class MappedRow(NamedTuple):
    """A canonical record plus what the source actually supplied.

    ``provided`` names the record fields read from the row (used by
    reconciliation to decide what overwrites an existing record);
    ``degraded`` names the fields that fell back to a default.
    """

    record: CanonicalModel
    provided: frozenset[str]
    degraded: tuple[str, ...] = ()


class _MapContext(NamedTuple):
    config: ImportConfig
    known_projects: tuple[Any, ...]
    now: datetime


class _FieldReader:
    """Reads logical fields from a row and tracks provided/degraded ones."""

    def __init__(self, row: RawRow, mapping: FieldMapping, now: datetime) -> None:
        self.row = row
        self.mapping = mapping
        self.now = now
        self.present: set[str] = set()
        self.provided: set[str] = set()
        self.degraded: list[str] = []

    def raw(self, field: str) -> Any:
        column = self.mapping.column_for(field)
        if column is None:
            return None
        value = self.row.get(column)
        if not is_blank(value):
            self.present.add(field)
        return value

    def _accept(self, field: str, result: ParseResult, target: Optional[str]) -> Any:
        if result.degraded:
            self.degraded.append(field)
        else:
            self.provided.add(target or field)
        return result.value

    def text(self, field: str, default: str = "", target: Optional[str] = None) -> str:
        value = normalize_text(self.raw(field))
        if not value:
            return default
        self.provided.add(target or field)
        return value

    def amount(self, field: str, default: float = 0.0, count: bool = False) -> float:
        value = self.raw(field)
        if is_blank(value):
            return default
        parser = parse_count_result if count else parse_currency_result
        result = parser(value)
        if result.degraded:
            self.degraded.append(field)
            return default
        if result.value < 0:
            self.degraded.append(field)
            return 0.0
        self.provided.add(field)
        return result.value

    def date(self, field: str, required: bool = False) -> Optional[datetime]:
        value = self.raw(field)
        if is_blank(value):
            return self.now if required else None
        result = parse_date_result(value, self.now)
        if result.degraded:
            self.degraded.append(field)
            return self.now if required else None
        self.provided.add(field)
        return result.value

    def classify(self, field: str, table: VocabularyTable) -> Enum:
        value = self.raw(field)
        if is_blank(value):
            return table.default
        return self._accept(field, table.classify_result(value), None)


# =============================================================================
# Helpers
# =============================================================================


def derive_id(kind: EntityKind, natural_key: Optional[str] = None) -> str:
    """Build a record id: ``<prefix>-<natural key>`` or a timestamp + random suffix."""
    prefix = ID_PREFIXES[EntityKind(kind)]
    key = normalize_text(natural_key)
    if key:
        return f"{prefix}-{key}"
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def find_project(name: str, known_projects: Iterable[Any]) -> Optional[Any]:
    """Find a known project by name, case-insensitive, containment either way.

    An exact (case-insensitive) name match is preferred over containment.
    """
    needle = name.strip().lower()
    if not needle:
        return None
    projects = [project for project in known_projects if getattr(project, "name", "")]
    for project in projects:
        if project.name.strip().lower() == needle:
            return project
    for project in projects:
        candidate = project.name.strip().lower()
        if candidate and (needle in candidate or candidate in needle):
            return project
    return None


def _link_project(reader: _FieldReader, ctx: _MapContext) -> tuple[Optional[str], str, Any]:
    project_name = reader.text("project_name")
    project = find_project(project_name, ctx.known_projects)
    if project is not None:
        reader.provided.add("project_id")
        return project.id, project_name, project
    if project_name:
        logger.debug("No known project matches %r", project_name)
    return None, project_name or UNKNOWN_PROJECT, None


# =============================================================================
# Per-kind builders
# =============================================================================


def row_to_project(reader: _FieldReader, ctx: _MapContext) -> dict[str, Any]:
    """Build Project kwargs from a row."""
    defaults = ENTITY_DEFAULTS[EntityKind.PROJECT]
    external_ref = reader.text("external_ref") or None

    email = normalize_email(reader.raw("email"))
    phone = normalize_text(reader.raw("phone"))
    contact = " | ".join(part for part in (email, phone) if part)
    if contact:
        reader.provided.add("contact_info")
    else:
        contact = reader.text("contact_info")

    image_url = reader.text("image_url") or None
    if image_url and not image_url.lower().startswith(IMAGE_URL_PREFIXES):
        reader.provided.discard("image_url")
        reader.degraded.append("image_url")
        image_url = None

    return {
        "id": derive_id(EntityKind.PROJECT, external_ref),
        "external_ref": external_ref,
        "name": reader.text("name", defaults["name"]),
        "client": reader.text("client", defaults["client"]),
        "status": reader.classify("status", PROJECT_STATUS),
        "contract_value": reader.amount("contract_value"),
        "address": reader.text("address", ctx.config.default_address),
        "city": reader.text("city", ctx.config.default_city),
        "area": reader.text("area"),
        "estimator": reader.text("estimator", defaults["estimator"]),
        "contact_info": contact,
        "labor_rate": reader.amount("labor_rate", ctx.config.default_labor_rate),
        "image_url": image_url,
        "notes": reader.text("notes"),
        "date_created": reader.date("date_created", required=True),
        "delivery_date": reader.date("delivery_date"),
        "expiration_date": reader.date("expiration_date"),
        "awarded_date": reader.date("awarded_date"),
        "start_date": reader.date("start_date"),
        "completion_date": reader.date("completion_date"),
        "last_contact_date": reader.date("last_contact_date"),
    }


def row_to_ticket(reader: _FieldReader, ctx: _MapContext) -> dict[str, Any]:
    """Build ServiceTicket kwargs from a row.

    The ticket is linked to a known project by name; when linked, the
    project's client and address fill in for missing ones.
    """
    defaults = ENTITY_DEFAULTS[EntityKind.TICKET]
    external_ref = reader.text("external_ref") or None
    project_id, project_name, project = _link_project(reader, ctx)

    client_name = reader.text("client_name")
    if not client_name:
        client_name = getattr(project, "client", "") or defaults["client_name"]
    address = reader.text("address")
    if not address and project is not None:
        address = project.address

    return {
        "id": derive_id(EntityKind.TICKET, external_ref),
        "external_ref": external_ref,
        "title": reader.text("title", defaults["title"]),
        "type": reader.classify("type", TICKET_TYPE),
        "project_id": project_id,
        "project_name": project_name,
        "client_name": client_name,
        "address": address,
        "status": reader.classify("status", TICKET_STATUS),
        "technician": reader.text("technician"),
        "amount": reader.amount("amount"),
        "labor_rate": reader.amount("labor_rate", ctx.config.default_labor_rate),
        "notes": reader.text("notes"),
        "date_created": reader.date("date_created", required=True),
    }


def row_to_lead(reader: _FieldReader, ctx: _MapContext) -> dict[str, Any]:
    """Build Lead kwargs from a row. Leads are deduplicated by email, not id."""
    defaults = ENTITY_DEFAULTS[EntityKind.LEAD]
    external_ref = reader.text("external_ref") or None

    email = normalize_email(reader.raw("email"))
    if email:
        reader.provided.add("email")
    company = reader.text("company")
    name = reader.text("name") or company or email or defaults["name"]

    return {
        "id": derive_id(EntityKind.LEAD, external_ref),
        "external_ref": external_ref,
        "name": name,
        "company": company,
        "email": email,
        "phone": reader.text("phone"),
        "source": reader.text("source"),
        "status": reader.classify("status", LEAD_STATUS),
        "notes": reader.text("notes"),
        "date_added": reader.date("date_added", required=True),
    }


def row_to_purchase(reader: _FieldReader, ctx: _MapContext) -> dict[str, Any]:
    """Build PurchaseRecord kwargs from a row.

    Without a source id column the external reference is the PO number
    plus the lower-cased item description, since one PO spans many lines.
    """
    defaults = ENTITY_DEFAULTS[EntityKind.PURCHASE]
    source_key = reader.text("external_ref")
    po_number = reader.text("po_number")
    description = reader.text("item_description")

    if source_key:
        external_ref: Optional[str] = source_key
    elif po_number:
        external_ref = f"{po_number}:{description.lower()}" if description else po_number
    else:
        external_ref = None

    quantity = reader.amount("quantity", count=True)
    unit_cost = reader.amount("unit_cost")
    total_cost = reader.amount("total_cost")
    if not total_cost and quantity and unit_cost:
        total_cost = round(quantity * unit_cost, 2)
        reader.provided.add("total_cost")

    supplier_raw = reader.raw("supplier")
    if not is_blank(supplier_raw):
        reader.provided.add("supplier")

    project_id, project_name, _ = _link_project(reader, ctx)

    return {
        "id": derive_id(EntityKind.PURCHASE, source_key or None),
        "external_ref": external_ref,
        "date": reader.date("date", required=True),
        "po_number": po_number,
        "brand": reader.text("brand", defaults["brand"]),
        "item_description": description,
        "quantity": quantity,
        "unit_cost": unit_cost,
        "total_cost": total_cost,
        "supplier": normalize_supplier(supplier_raw),
        "project_id": project_id,
        "project_name": project_name,
        "type": reader.classify("type", PURCHASE_CATEGORY),
        "source": reader.text("source", defaults["source"]),
        "notes": reader.text("notes"),
    }


ROW_BUILDERS: dict[EntityKind, Callable[[_FieldReader, _MapContext], dict[str, Any]]] = {
    EntityKind.PROJECT: row_to_project,
    EntityKind.TICKET: row_to_ticket,
    EntityKind.LEAD: row_to_lead,
    EntityKind.PURCHASE: row_to_purchase,
}


# =============================================================================
# Entry point
# =============================================================================


def passes_filter(row: RawRow, mapping: FieldMapping, row_filter: Optional[RowFilter]) -> bool:
    """Apply a row filter. An unmapped filter field filters nothing.

    The filter field is a logical field name; a raw column name present in
    the row is accepted as well.
    """
    if row_filter is None:
        return True
    column = mapping.column_for(row_filter.field)
    if column is None and row_filter.field in row:
        column = row_filter.field
    if column is None:
        return True
    return row_filter.matches(row.get(column))


def map_row(
    kind: EntityKind,
    row: RawRow,
    mapping: Optional[FieldMapping] = None,
    *,
    config: Optional[ImportConfig] = None,
    known_projects: Iterable[Any] = (),
    row_filter: Optional[RowFilter] = None,
    now: Optional[datetime] = None,
    row_number: int = 0,
) -> Optional[MappedRow]:
    """Convert one raw row into a canonical record.

    Args:
        kind: Entity kind to build.
        row: Raw row keyed by source column name.
        mapping: Field mapping to read through; auto-suggested from the
            row's own columns when omitted.
        config: Import defaults (address, city, labor rate).
        known_projects: Projects that tickets and purchases may link to.
        row_filter: Optional equality filter on a mapped field.
        now: Timestamp used for missing or unreadable dates.
        row_number: 1-based source row number for error messages.

    Returns:
        MappedRow, or None if the row is excluded by the filter.

    Raises:
        RowMappingFailure: If no mapped field has a value or the record
            fails validation even after fallbacks.
    """
    kind = EntityKind(kind)
    if mapping is None:
        mapping = suggest_field_mapping(kind, list(row.keys()))

    if not passes_filter(row, mapping, row_filter):
        return None

    ctx = _MapContext(
        config=config or ImportConfig(),
        known_projects=tuple(known_projects),
        now=now or datetime.now(timezone.utc),
    )
    reader = _FieldReader(row, mapping, ctx.now)
    data = ROW_BUILDERS[kind](reader, ctx)

    if not reader.present:
        raise RowMappingFailure(row_number, f"no mapped {kind.value} fields have a value")

    try:
        record = RECORD_MODELS[kind](**data)
    except ValidationError as e:
        raise RowMappingFailure(row_number, f"invalid {kind.value}: {e.errors()[0]['msg']}") from e

    for field in reader.degraded:
        logger.debug("Row %d: %s fell back to default", row_number, field)

    return MappedRow(record, frozenset(reader.provided), tuple(reader.degraded))
