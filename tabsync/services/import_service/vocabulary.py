"""Keyword vocabularies mapping free-text status strings to enums.

Each vocabulary is an ordered rule table. Classification returns the
first rule with a keyword contained in the (lower-cased, accent-folded)
input. Terminal states are authored ahead of provisional ones so that
"Ganado - Enviado" is Won, not Sent; VocabularyTable refuses a table that
breaks this order.
"""

import logging
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

from tabsync.models.records import (
    EntityKind,
    LeadStatus,
    ProjectStatus,
    PurchaseCategory,
    TicketStatus,
    TicketType,
)

from .values import ParseResult, fold_text, normalize_text

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class VocabularyRule(NamedTuple, Generic[E]):
    """One canonical value and the keywords that select it."""

    canonical: E
    keywords: tuple[str, ...]


class VocabularyTable(Generic[E]):
    """Ordered keyword rules for one enumeration."""

    def __init__(
        self,
        name: str,
        rules: list[VocabularyRule[E]],
        default: E,
        terminal: frozenset[E] = frozenset(),
    ) -> None:
        self.name = name
        self.default = default
        self.terminal = terminal
        self.rules = tuple(
            VocabularyRule(rule.canonical, tuple(fold_text(k) for k in rule.keywords))
            for rule in rules
        )
        check_rule_order(self)

    def classify_result(self, value: Any) -> ParseResult[E]:
        """Classify free text; unmatched non-empty text is flagged degraded."""
        text = fold_text(normalize_text(value))
        if not text:
            return ParseResult(self.default)

        for rule in self.rules:
            if any(keyword in text for keyword in rule.keywords):
                return ParseResult(rule.canonical)

        logger.debug("No %s rule matched %r, using %s", self.name, text, self.default.value)
        return ParseResult(self.default, degraded=True)

    def classify(self, value: Any) -> E:
        return self.classify_result(value).value


def check_rule_order(table: VocabularyTable) -> None:
    """Ensure every terminal rule precedes every provisional rule.

    Raises:
        ValueError: If a terminal state is listed after a provisional one.
    """
    seen_provisional = None
    for rule in table.rules:
        if rule.canonical in table.terminal:
            if seen_provisional is not None:
                raise ValueError(
                    f"{table.name}: terminal rule {rule.canonical.value!r} "
                    f"follows provisional rule {seen_provisional.value!r}"
                )
        elif seen_provisional is None:
            seen_provisional = rule.canonical


PROJECT_STATUS = VocabularyTable(
    "project status",
    [
        # "no adjudicado" must be read before "adjudicado"
        VocabularyRule(ProjectStatus.LOST, (
            "lost", "closed lost", "rejected", "declined", "cancel", "not awarded",
            "not approved", "perdid", "rechazad", "cancelad", "no adjudicad", "no ganad", "no aprobad",
        )),
        VocabularyRule(ProjectStatus.WON, (
            "won", "awarded", "approved", "signed", "closed won",
            "ganad", "adjudicad", "aprobad", "firmad", "cerrad",
        )),
        VocabularyRule(ProjectStatus.COMPLETED, (
            "completed", "complete", "finished", "done", "closed out",
            "completad", "terminad", "finalizad", "entregad",
        )),
        VocabularyRule(ProjectStatus.FINALIZED, (
            "finalized", "finalised", "final estimate", "presupuesto final",
        )),
        VocabularyRule(ProjectStatus.ONGOING, (
            "ongoing", "in progress", "active", "started", "under construction",
            "en ejecucion", "ejecucion", "en progreso", "en curso", "activo", "iniciad", "en obra",
        )),
        VocabularyRule(ProjectStatus.SENT, (
            "sent", "submitted", "pending", "quoted", "bid",
            "enviad", "presentad", "pendiente", "cotizad", "licitacion",
        )),
        VocabularyRule(ProjectStatus.DRAFT, (
            "draft", "new", "estimating",
            "borrador", "nuevo", "nueva", "en estimacion",
        )),
    ],
    default=ProjectStatus.DRAFT,
    terminal=frozenset({
        ProjectStatus.LOST,
        ProjectStatus.WON,
        ProjectStatus.COMPLETED,
        ProjectStatus.FINALIZED,
    }),
)

TICKET_STATUS = VocabularyTable(
    "ticket status",
    [
        VocabularyRule(TicketStatus.DENIED, (
            "denied", "rejected", "declined", "not approved", "not authorized",
            "denegad", "rechazad", "negad", "no aprobad", "no autorizad",
        )),
        VocabularyRule(TicketStatus.COMPLETED, (
            "completed", "complete", "finished", "done", "closed",
            "completad", "terminad", "finalizad", "cerrad",
        )),
        VocabularyRule(TicketStatus.AUTHORIZED, (
            "authorized", "authorised", "approved", "accepted",
            "autorizad", "aprobad", "aceptad",
        )),
        VocabularyRule(TicketStatus.SCHEDULED, (
            "scheduled", "booked",
            "programad", "agendad",
        )),
        VocabularyRule(TicketStatus.PENDING, (
            "pending", "on hold", "waiting",
            "pendiente", "en espera",
        )),
        VocabularyRule(TicketStatus.SENT, (
            "sent", "submitted", "open",
            "enviad", "presentad", "abiert",
        )),
    ],
    default=TicketStatus.SENT,
    terminal=frozenset({
        TicketStatus.DENIED,
        TicketStatus.COMPLETED,
        TicketStatus.AUTHORIZED,
    }),
)

TICKET_TYPE = VocabularyTable(
    "ticket type",
    [
        VocabularyRule(TicketType.SERVICE_CALL, (
            "service", "call", "repair", "maintenance",
            "servicio", "llamada", "reparacion", "mantenimiento",
        )),
        VocabularyRule(TicketType.CHANGE_ORDER, (
            "change order", "change", "extra", "addendum",
            "orden de cambio", "cambio", "adicional",
        )),
    ],
    default=TicketType.CHANGE_ORDER,
)

LEAD_STATUS = VocabularyTable(
    "lead status",
    [
        # "disqualified" and "not interested" before "qualified"/"interested"
        VocabularyRule(LeadStatus.LOST, (
            "lost", "disqualified", "not interested", "unqualified", "dead",
            "perdid", "descartad", "no interesad", "no calificad",
        )),
        VocabularyRule(LeadStatus.WON, (
            "won", "converted", "customer", "closed",
            "ganad", "convertid", "cerrad",
        )),
        VocabularyRule(LeadStatus.QUALIFIED, (
            "qualified", "interested", "hot", "warm",
            "calificad", "cualificad", "interesad",
        )),
        VocabularyRule(LeadStatus.CONTACTED, (
            "contacted", "called", "follow up", "follow-up", "replied",
            "contactad", "llamad", "seguimiento", "respondi",
        )),
        VocabularyRule(LeadStatus.NEW, (
            "new", "open", "cold",
            "nuevo", "nueva", "abiert",
        )),
    ],
    default=LeadStatus.NEW,
    terminal=frozenset({LeadStatus.LOST, LeadStatus.WON}),
)

PURCHASE_CATEGORY = VocabularyTable(
    "purchase category",
    [
        VocabularyRule(PurchaseCategory.SUBCONTRACT, (
            "subcontract", "sub-contract",
            "subcontrat",
        )),
        VocabularyRule(PurchaseCategory.LABOR, (
            "labor", "labour", "payroll",
            "mano de obra", "nomina",
        )),
        VocabularyRule(PurchaseCategory.EQUIPMENT, (
            "equipment", "rental", "tool",
            "equipo", "alquiler", "herramienta",
        )),
        VocabularyRule(PurchaseCategory.MATERIAL, (
            "material", "supply", "supplies", "stock",
            "suministro", "inventario",
        )),
        VocabularyRule(PurchaseCategory.OTHER, (
            "other", "misc",
            "otro", "varios",
        )),
    ],
    default=PurchaseCategory.MATERIAL,
)

# Status vocabulary per entity kind
VOCABULARIES: dict[EntityKind, VocabularyTable] = {
    EntityKind.PROJECT: PROJECT_STATUS,
    EntityKind.TICKET: TICKET_STATUS,
    EntityKind.LEAD: LEAD_STATUS,
    EntityKind.PURCHASE: PURCHASE_CATEGORY,
}

# Fallback value per entity kind
DEFAULTS: dict[EntityKind, Enum] = {kind: table.default for kind, table in VOCABULARIES.items()}


def classify_result(kind: EntityKind, value: Any) -> ParseResult[Enum]:
    """Classify a status/category string for an entity kind."""
    return VOCABULARIES[EntityKind(kind)].classify_result(value)


def classify(kind: EntityKind, value: Any) -> Enum:
    """Classify a status/category string for an entity kind."""
    return classify_result(kind, value).value
