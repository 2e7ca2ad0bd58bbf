"""Data models for TabSync."""

from tabsync.models.field_mapping import FieldMapping, mapping_key
from tabsync.models.import_result import ImportResult, ImportStatus
from tabsync.models.records import (
    RECORD_MODELS,
    CanonicalModel,
    CanonicalRecord,
    EntityKind,
    Lead,
    LeadStatus,
    Project,
    ProjectStatus,
    PurchaseCategory,
    PurchaseRecord,
    ServiceTicket,
    TicketStatus,
    TicketType,
)

__all__ = [
    # Canonical records
    "CanonicalModel",
    "CanonicalRecord",
    "EntityKind",
    "Lead",
    "Project",
    "PurchaseRecord",
    "RECORD_MODELS",
    "ServiceTicket",
    # Vocabularies
    "LeadStatus",
    "ProjectStatus",
    "PurchaseCategory",
    "TicketStatus",
    "TicketType",
    # Mapping
    "FieldMapping",
    "mapping_key",
    # Import
    "ImportResult",
    "ImportStatus",
]
