"""Import engine: parse tabular rows and reconcile them into canonical records."""

from .columns import ColumnResolver, suggest_field_mapping
from .constants import (
    ENTITY_DEFAULTS,
    FIELD_CANDIDATES,
    ID_PREFIXES,
    MAX_ROWS,
    MIN_SUBSTRING_LENGTH,
)
from .converters import (
    MappedRow,
    RowFilter,
    derive_id,
    find_project,
    map_row,
    passes_filter,
    row_to_lead,
    row_to_project,
    row_to_purchase,
    row_to_ticket,
)
from .errors import RowMappingFailure, SinkUnavailable, SourceUnavailable, TabSyncError
from .parsers import parse_csv, parse_file, parse_xlsx
from .processor import ImportOrchestrator
from .reconcile import MergePolicy, ReconcileOutcome, reconcile, semantic_key
from .values import (
    ParseResult,
    clean_header,
    normalize_email,
    normalize_supplier,
    normalize_text,
    parse_count,
    parse_count_result,
    parse_currency,
    parse_currency_result,
    parse_date,
    parse_date_result,
    strip_quotes,
)
from .vocabulary import (
    LEAD_STATUS,
    PROJECT_STATUS,
    PURCHASE_CATEGORY,
    TICKET_STATUS,
    TICKET_TYPE,
    DEFAULTS,
    VOCABULARIES,
    VocabularyRule,
    VocabularyTable,
    check_rule_order,
    classify,
    classify_result,
)

__all__ = [
    # Constants
    "ENTITY_DEFAULTS",
    "FIELD_CANDIDATES",
    "ID_PREFIXES",
    "MAX_ROWS",
    "MIN_SUBSTRING_LENGTH",
    # Errors
    "RowMappingFailure",
    "SinkUnavailable",
    "SourceUnavailable",
    "TabSyncError",
    # Values
    "ParseResult",
    "clean_header",
    "normalize_email",
    "normalize_supplier",
    "normalize_text",
    "parse_count",
    "parse_count_result",
    "parse_currency",
    "parse_currency_result",
    "parse_date",
    "parse_date_result",
    "strip_quotes",
    # Vocabulary
    "LEAD_STATUS",
    "PROJECT_STATUS",
    "PURCHASE_CATEGORY",
    "TICKET_STATUS",
    "TICKET_TYPE",
    "DEFAULTS",
    "VOCABULARIES",
    "VocabularyRule",
    "VocabularyTable",
    "check_rule_order",
    "classify",
    "classify_result",
    # Columns
    "ColumnResolver",
    "suggest_field_mapping",
    # Parsers
    "parse_csv",
    "parse_file",
    "parse_xlsx",
    # Converters
    "MappedRow",
    "RowFilter",
    "derive_id",
    "find_project",
    "map_row",
    "passes_filter",
    "row_to_lead",
    "row_to_project",
    "row_to_purchase",
    "row_to_ticket",
    # Reconcile
    "MergePolicy",
    "ReconcileOutcome",
    "reconcile",
    "semantic_key",
    # Processor
    "ImportOrchestrator",
]
