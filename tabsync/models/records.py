"""Canonical record models produced by the import engine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """Kinds of business record the engine can import."""

    PROJECT = "project"
    TICKET = "ticket"
    LEAD = "lead"
    PURCHASE = "purchase"


class ProjectStatus(str, Enum):
    """Lifecycle status of a project estimate."""

    DRAFT = "Draft"
    SENT = "Sent"
    WON = "Won"
    LOST = "Lost"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    FINALIZED = "Finalized"


class TicketStatus(str, Enum):
    """Status of a change order or service call."""

    SENT = "Sent"
    AUTHORIZED = "Authorized"
    DENIED = "Denied"
    COMPLETED = "Completed"
    SCHEDULED = "Scheduled"
    PENDING = "Pending"


class TicketType(str, Enum):
    """Type of service ticket."""

    CHANGE_ORDER = "Change Order"
    SERVICE_CALL = "Service Call"


class LeadStatus(str, Enum):
    """Sales pipeline status of a contact lead."""

    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    WON = "Won"
    LOST = "Lost"


class PurchaseCategory(str, Enum):
    """Cost category of a purchase line."""

    MATERIAL = "Material"
    LABOR = "Labor"
    EQUIPMENT = "Equipment"
    SUBCONTRACT = "Subcontract"
    OTHER = "Other"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Non-negative, finite amount
Amount = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class CanonicalModel(BaseModel):
    """Shared configuration for canonical records."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(min_length=1)
    external_ref: Optional[str] = None
    notes: str = ""


class Project(CanonicalModel):
    """A project estimate, from first draft through completion."""

    name: str
    client: str
    status: ProjectStatus = ProjectStatus.DRAFT
    contract_value: Amount = 0.0
    address: str = ""
    city: str = ""
    estimator: str = ""
    contact_info: str = ""
    labor_rate: Amount = 0.0
    area: str = ""
    image_url: Optional[str] = None
    date_created: AwareDatetime = Field(default_factory=_utcnow)
    delivery_date: Optional[AwareDatetime] = None
    expiration_date: Optional[AwareDatetime] = None
    awarded_date: Optional[AwareDatetime] = None
    start_date: Optional[AwareDatetime] = None
    completion_date: Optional[AwareDatetime] = None
    last_contact_date: Optional[AwareDatetime] = None


class ServiceTicket(CanonicalModel):
    """A change order or service call raised against a project."""

    title: str
    type: TicketType = TicketType.CHANGE_ORDER
    project_id: Optional[str] = None
    project_name: str = ""
    client_name: str
    address: str = ""
    status: TicketStatus = TicketStatus.SENT
    technician: str = ""
    amount: Amount = 0.0
    labor_rate: Amount = 0.0
    date_created: AwareDatetime = Field(default_factory=_utcnow)


class Lead(CanonicalModel):
    """A sales contact."""

    name: str
    company: str = ""
    email: str = ""
    phone: str = ""
    source: str = ""
    status: LeadStatus = LeadStatus.NEW
    date_added: AwareDatetime = Field(default_factory=_utcnow)


class PurchaseRecord(CanonicalModel):
    """A single purchase or invoice line."""

    date: AwareDatetime = Field(default_factory=_utcnow)
    po_number: str = ""
    brand: str = ""
    item_description: str = ""
    quantity: Amount = 0.0
    unit_cost: Amount = 0.0
    total_cost: Amount = 0.0
    supplier: str = ""
    project_id: Optional[str] = None
    project_name: str = ""
    type: PurchaseCategory = PurchaseCategory.MATERIAL
    source: str = ""


CanonicalRecord = Union[Project, ServiceTicket, Lead, PurchaseRecord]

RECORD_MODELS: dict[EntityKind, type[CanonicalModel]] = {
    EntityKind.PROJECT: Project,
    EntityKind.TICKET: ServiceTicket,
    EntityKind.LEAD: Lead,
    EntityKind.PURCHASE: PurchaseRecord,
}
