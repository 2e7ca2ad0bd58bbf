"""Unit tests for column resolution and field auto-mapping."""

from tabsync.models.field_mapping import FieldMapping
from tabsync.models.records import EntityKind
from tabsync.services.import_service.columns import ColumnResolver, suggest_field_mapping
from tabsync.services.import_service.constants import FIELD_CANDIDATES


# =============================================================================
# ColumnResolver
# =============================================================================


class TestColumnResolver:
    """Tests for ColumnResolver.resolve_column and value."""

    def test_case_insensitive_match(self) -> None:
        """Spanish headers resolve through bilingual candidates."""
        resolver = ColumnResolver(["Cliente", "Estado", "Valor"])
        assert resolver.resolve_column(["client", "cliente", "customer"]) == "Cliente"

    def test_no_match_is_none(self) -> None:
        resolver = ColumnResolver(["Cliente", "Estado", "Valor"])
        assert resolver.resolve_column(["zzz"]) is None

    def test_empty_inputs_never_raise(self) -> None:
        assert ColumnResolver([]).resolve_column(["client"]) is None
        assert ColumnResolver(["Client"]).resolve_column([]) is None
        assert ColumnResolver(["Client"]).resolve_column(["", "client"]) == "Client"

    def test_exact_key_beats_case_insensitive(self) -> None:
        resolver = ColumnResolver(["status", "Status"])
        assert resolver.resolve_column(["Status"]) == "Status"

    def test_stages_outrank_candidate_order(self) -> None:
        """A later candidate matching exactly beats an earlier substring match."""
        resolver = ColumnResolver(["Project Value", "Amount"])
        assert resolver.resolve_column(["value", "amount"]) == "Amount"

    def test_substring_match(self) -> None:
        resolver = ColumnResolver(["Client Phone Number", "Notes"])
        assert resolver.resolve_column(["phone"]) == "Client Phone Number"

    def test_short_candidates_skip_substring_stage(self) -> None:
        """'id' must not match inside 'Paid'."""
        resolver = ColumnResolver(["Paid", "Total"])
        assert resolver.resolve_column(["id"]) is None

    def test_bom_and_whitespace_in_headers(self) -> None:
        """Cleaned headers match, but the original column name is returned."""
        resolver = ColumnResolver(["\ufeffClient Name ", "Status"])
        assert resolver.resolve_column(["client name"]) == "\ufeffClient Name "

    def test_accent_insensitive(self) -> None:
        resolver = ColumnResolver(["Dirección"])
        assert resolver.resolve_column(["direccion"]) == "Dirección"

    def test_labels_match_internal_names(self) -> None:
        """Display names of remote list columns are matched too."""
        resolver = ColumnResolver(["field_1", "field_2"], labels={"field_2": "Cliente"})
        assert resolver.resolve_column(["cliente"]) == "field_2"

    def test_exclude_claimed_columns(self) -> None:
        resolver = ColumnResolver(["Client", "Customer"])
        assert resolver.resolve_column(["client", "customer"], exclude={"Client"}) == "Customer"

    def test_value_uses_candidates(self) -> None:
        row = {"Cliente": "Acme", "Valor": "100"}
        resolver = ColumnResolver.from_row(row)
        assert resolver.value(row, ["client", "cliente"]) == "Acme"
        assert resolver.value(row, ["zzz"]) is None

    def test_explicit_column_bypasses_heuristics(self) -> None:
        row = {"Client": "Wrong", "Owner Company": "Right"}
        resolver = ColumnResolver.from_row(row)
        assert resolver.value(row, ["client"], explicit="Owner Company") == "Right"
        assert resolver.value(row, ["client"], explicit="Missing") is None


# =============================================================================
# Auto-mapping
# =============================================================================


class TestSuggestFieldMapping:
    """Tests for suggest_field_mapping."""

    def test_project_template_headers(self) -> None:
        columns = ["Project Name", "Client", "Status", "Contract Value", "Delivery Date", "Date"]
        mapping = suggest_field_mapping(EntityKind.PROJECT, columns, source_id="file:a.xlsx")

        assert mapping.kind == EntityKind.PROJECT
        assert mapping.source_id == "file:a.xlsx"
        assert mapping.column_for("name") == "Project Name"
        assert mapping.column_for("client") == "Client"
        assert mapping.column_for("status") == "Status"
        assert mapping.column_for("contract_value") == "Contract Value"
        assert mapping.column_for("delivery_date") == "Delivery Date"
        assert mapping.column_for("date_created") == "Date"
        assert mapping.column_for("address") is None

    def test_every_field_is_listed(self) -> None:
        """Unmatched fields are present with an empty column."""
        mapping = suggest_field_mapping(EntityKind.LEAD, ["Name"])
        assert set(mapping.fields) == set(FIELD_CANDIDATES[EntityKind.LEAD])
        assert mapping.fields["email"] == ""

    def test_each_column_claimed_once(self) -> None:
        mapping = suggest_field_mapping(EntityKind.TICKET, ["Description", "Client"])
        columns = [column for column in mapping.fields.values() if column]
        assert len(columns) == len(set(columns))
        assert mapping.column_for("title") == "Description"
        assert mapping.column_for("notes") is None

    def test_existing_choice_is_kept(self) -> None:
        existing = FieldMapping(
            kind=EntityKind.PROJECT,
            source_id="list:s/l",
            fields={"client": "Customer Name"},
        )
        mapping = suggest_field_mapping(EntityKind.PROJECT, ["Client", "Customer Name"], existing=existing)

        assert mapping.column_for("client") == "Customer Name"
        assert mapping.source_id == "list:s/l"
        # The existing mapping is not modified
        assert existing.fields == {"client": "Customer Name"}

    def test_overwrite_remaps_everything(self) -> None:
        existing = FieldMapping(
            kind=EntityKind.PROJECT,
            source_id="list:s/l",
            fields={"client": "Customer Name"},
        )
        mapping = suggest_field_mapping(
            EntityKind.PROJECT, ["Client", "Customer Name"], existing=existing, overwrite=True
        )
        assert mapping.column_for("client") == "Client"

    def test_webhook_columns_for_purchases(self) -> None:
        columns = ["Id", "TxnDate", "DocNumber", "Line.0.Description", "TotalAmt", "VendorRef.name"]
        mapping = suggest_field_mapping(EntityKind.PURCHASE, columns)

        assert mapping.column_for("external_ref") == "Id"
        assert mapping.column_for("date") == "TxnDate"
        assert mapping.column_for("po_number") == "DocNumber"
        assert mapping.column_for("item_description") == "Line.0.Description"
        assert mapping.column_for("total_cost") == "TotalAmt"
        assert mapping.column_for("supplier") == "VendorRef.name"

    def test_exact_match_wins_over_earlier_field_substring(self) -> None:
        """'Client Name' goes to client, not to name through its 'name' candidate."""
        mapping = suggest_field_mapping(EntityKind.PROJECT, ["Job", "Client Name"])

        assert mapping.column_for("client") == "Client Name"
        assert mapping.column_for("name") is None

    def test_substring_pass_uses_unclaimed_columns(self) -> None:
        mapping = suggest_field_mapping(EntityKind.PROJECT, ["Client Name", "Job Name"])

        assert mapping.column_for("client") == "Client Name"
        assert mapping.column_for("name") == "Job Name"

    def test_resolve_without_substring(self) -> None:
        resolver = ColumnResolver(["Client Phone Number"])
        assert resolver.resolve_column(["phone"], substring=False) is None

    def test_mapping_is_timestamped(self) -> None:
        existing = FieldMapping(kind=EntityKind.LEAD, source_id="x")
        mapping = suggest_field_mapping(EntityKind.LEAD, ["Name"], existing=existing)
        assert existing.updated_at is None
        assert mapping.updated_at is not None
