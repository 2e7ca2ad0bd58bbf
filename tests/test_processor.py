"""Tests for the import orchestrator."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tabsync.config.schema import ImportConfig
from tabsync.models.field_mapping import FieldMapping, mapping_key
from tabsync.models.import_result import ImportStatus
from tabsync.models.records import EntityKind, ServiceTicket
from tabsync.services.import_service import ImportOrchestrator, RowFilter, SinkUnavailable, SourceUnavailable
from tabsync.services.mapping_store import MemoryMappingStore
from tabsync.services.sinks import MemorySink, RowSink
from tabsync.services.sources import FileRowSource, RemoteListRowSource, StaticRowSource


def _project_rows(count: int, usa: int = 0) -> list[dict]:
    return [
        {"ID": str(i), "Project Name": f"Project {i}", "Area": "USA" if i < usa else "Canada"}
        for i in range(count)
    ]


class FlakySink(RowSink):
    """Fails for chosen record ids."""

    def __init__(self, failing: set[str], error: type[Exception] = SinkUnavailable) -> None:
        self.failing = failing
        self.error = error
        self.written: list[str] = []

    async def write(self, record) -> None:
        if record.id in self.failing:
            if self.error is SinkUnavailable:
                raise SinkUnavailable(record.id, "status 503")
            raise self.error("boom")
        self.written.append(record.id)


# =============================================================================
# Batch processing
# =============================================================================


class TestRun:
    """Tests for ImportOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_counts_and_status(self, now) -> None:
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(3)), EntityKind.PROJECT)
        result = await orchestrator.run(now=now)

        assert result.status == ImportStatus.COMPLETED
        assert result.rows_read == 3
        assert (result.added, result.updated, result.skipped, result.failed) == (3, 0, 0, 0)
        assert [record.id for record in result.records] == ["prj-0", "prj-1", "prj-2"]
        assert result.summary() == "3 added, 0 updated, 0 skipped, 0 failed"

    @pytest.mark.asyncio
    async def test_region_filter_from_config(self, now) -> None:
        config = ImportConfig(apply_region_filter=True)
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(10, usa=4)), EntityKind.PROJECT, config=config)

        result = await orchestrator.run(now=now)

        assert result.added == 4
        assert result.filtered == 6
        assert all(record.area == "USA" for record in result.records)

    @pytest.mark.asyncio
    async def test_explicit_row_filter(self, now) -> None:
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(10, usa=4)), EntityKind.PROJECT)
        result = await orchestrator.run(row_filter=RowFilter("area", "usa"), now=now)
        assert (result.added, result.filtered) == (4, 6)

    @pytest.mark.asyncio
    async def test_region_filter_is_off_by_default(self, now) -> None:
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(10, usa=4)), EntityKind.PROJECT)
        result = await orchestrator.run(now=now)
        assert (result.added, result.filtered) == (10, 0)

    @pytest.mark.asyncio
    async def test_remote_list_projects_are_region_filtered(self, now) -> None:
        items = [
            {"id": "1", "fields": {"Title": "Tower", "Area": "USA"}},
            {"id": "2", "fields": {"Title": "Plaza", "Area": "Mexico"}},
        ]
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"value": items}))
        async with httpx.AsyncClient(transport=transport) as client:
            source = RemoteListRowSource("s1", "l1", base_url="https://graph.test", with_labels=False, client=client)
            result = await ImportOrchestrator(source, EntityKind.PROJECT).run(now=now)

        assert (result.added, result.filtered) == (1, 1)
        assert result.records[0].id == "prj-1"
        assert result.records[0].name == "Tower"

    @pytest.mark.asyncio
    async def test_failed_rows_are_counted(self, now) -> None:
        rows = [
            {"Project Name": "A", "Client": "X"},
            {"Project Name": "", "Client": ""},
            {"Project Name": "C", "Client": "Y"},
        ]
        orchestrator = ImportOrchestrator(StaticRowSource(rows), EntityKind.PROJECT)

        result = await orchestrator.run(now=now)

        assert (result.added, result.failed) == (2, 1)
        assert result.errors[0].startswith("Row 2:")

    @pytest.mark.asyncio
    async def test_degraded_fields_are_counted(self, now) -> None:
        rows = [{"Project Name": "A", "Status": "banana", "Value": "abc"}]
        result = await ImportOrchestrator(StaticRowSource(rows), EntityKind.PROJECT).run(now=now)
        assert result.degraded == 2
        assert result.added == 1

    @pytest.mark.asyncio
    async def test_progress_callback(self, now) -> None:
        calls = []
        orchestrator = ImportOrchestrator(
            StaticRowSource(_project_rows(3)),
            EntityKind.PROJECT,
            on_progress=lambda done, total: calls.append((done, total)),
        )
        await orchestrator.run(now=now)
        assert calls == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_unreadable_source_raises(self, tmp_path) -> None:
        orchestrator = ImportOrchestrator(FileRowSource(tmp_path / "missing.csv"), EntityKind.PROJECT)
        with pytest.raises(SourceUnavailable):
            await orchestrator.run()

    @pytest.mark.asyncio
    async def test_reimport_of_legacy_tickets(self, known_projects, now) -> None:
        legacy = ServiceTicket(
            id="tkt-legacy-7",
            title="Panel upgrade",
            client_name="Acme",
            notes="Imported from PO 1001",
        )
        rows = [
            {"PO#": "1001", "Description": "Panel upgrade", "Project": "Brickell Tower", "Amount": "$500"},
            {"PO#": "2002", "Description": "New circuit", "Project": "Brickell Tower", "Amount": "$300"},
        ]
        orchestrator = ImportOrchestrator(StaticRowSource(rows), EntityKind.TICKET)

        result = await orchestrator.run([legacy], known_projects=known_projects, now=now)

        assert (result.added, result.updated, result.skipped) == (1, 1, 0)
        assert result.records[0].id == "tkt-legacy-7"
        assert result.records[0].project_id == "prj-1"
        assert result.records[1].id == "tkt-2002"


# =============================================================================
# Field mappings
# =============================================================================


class TestMappings:
    """Tests for mapping resolution during a run."""

    @pytest.mark.asyncio
    async def test_first_run_saves_auto_mapping(self, now) -> None:
        store = MemoryMappingStore()
        source = StaticRowSource(_project_rows(1), source_id="file:projects.csv")
        await ImportOrchestrator(source, EntityKind.PROJECT, mapping_store=store).run(now=now)

        saved = store.mappings[mapping_key(EntityKind.PROJECT, "file:projects.csv")]
        assert saved.column_for("name") == "Project Name"
        assert saved.column_for("external_ref") == "ID"

    @pytest.mark.asyncio
    async def test_saved_choice_is_kept(self, now) -> None:
        store = MemoryMappingStore()
        await store.save(
            FieldMapping(kind=EntityKind.PROJECT, source_id="static", fields={"client": "Owner Company"})
        )
        rows = [{"Project Name": "A", "Client": "Wrong", "Owner Company": "Right"}]

        result = await ImportOrchestrator(StaticRowSource(rows), EntityKind.PROJECT, mapping_store=store).run(now=now)

        assert result.records[0].client == "Right"

    @pytest.mark.asyncio
    async def test_remap_replaces_saved_choice(self, now) -> None:
        store = MemoryMappingStore()
        await store.save(
            FieldMapping(kind=EntityKind.PROJECT, source_id="static", fields={"client": "Owner Company"})
        )
        rows = [{"Project Name": "A", "Client": "Wrong", "Owner Company": "Right"}]
        orchestrator = ImportOrchestrator(StaticRowSource(rows), EntityKind.PROJECT, mapping_store=store)

        result = await orchestrator.run(remap=True, now=now)

        assert result.records[0].client == "Wrong"
        assert store.mappings[mapping_key(EntityKind.PROJECT, "static")].column_for("client") == "Client"

    @pytest.mark.asyncio
    async def test_explicit_mapping_skips_store(self, now) -> None:
        store = MemoryMappingStore()
        mapping = FieldMapping(kind=EntityKind.PROJECT, source_id="static", fields={"name": "Label"})
        rows = [{"Label": "A", "Project Name": "B"}]

        result = await ImportOrchestrator(StaticRowSource(rows), EntityKind.PROJECT, mapping_store=store).run(
            mapping=mapping, now=now
        )

        assert result.records[0].name == "A"
        assert store.mappings == {}


# =============================================================================
# Writing to a sink
# =============================================================================


class TestSinkWrites:
    """Tests for chunked writes to a sink."""

    @pytest.mark.asyncio
    async def test_changed_records_are_written_in_chunks(self, now) -> None:
        sink = MemorySink()
        config = ImportConfig(write_chunk_size=2, write_chunk_delay=0.5)
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(5)), EntityKind.PROJECT, sink=sink, config=config)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await orchestrator.run(now=now)

        assert sink.writes == 5
        assert set(sink.records) == {f"prj-{i}" for i in range(5)}
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)
        assert result.write_failures == 0

    @pytest.mark.asyncio
    async def test_unchanged_records_are_not_written(self, now) -> None:
        sink = MemorySink()
        rows = [{"Name": "Ana", "Email": "ana@x.com"}]
        first = await ImportOrchestrator(StaticRowSource(rows), EntityKind.LEAD).run(now=now)

        result = await ImportOrchestrator(StaticRowSource(rows), EntityKind.LEAD, sink=sink).run(first.records, now=now)

        assert result.skipped == 1
        assert sink.writes == 0

    @pytest.mark.asyncio
    async def test_sink_failures_are_counted(self, now) -> None:
        sink = FlakySink({"prj-1"})
        config = ImportConfig(write_chunk_delay=0)
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(3)), EntityKind.PROJECT, sink=sink, config=config)

        result = await orchestrator.run(now=now)

        assert result.status == ImportStatus.COMPLETED
        assert result.write_failures == 1
        assert sink.written == ["prj-0", "prj-2"]
        assert "1 not saved" in result.summary()
        assert len(result.records) == 3

    @pytest.mark.asyncio
    async def test_unexpected_sink_error_propagates(self, now) -> None:
        sink = FlakySink({"prj-0"}, error=RuntimeError)
        orchestrator = ImportOrchestrator(StaticRowSource(_project_rows(1)), EntityKind.PROJECT, sink=sink)

        with pytest.raises(RuntimeError):
            await orchestrator.run(now=now)
