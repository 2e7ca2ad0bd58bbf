"""Tests for field mapping persistence."""

import json
import logging

import pytest

from tabsync.models.field_mapping import FieldMapping
from tabsync.models.records import EntityKind
from tabsync.services.mapping_store import JsonFileMappingStore, MemoryMappingStore


def _mapping(source_id: str = "file:projects.csv", **fields: str) -> FieldMapping:
    return FieldMapping(kind=EntityKind.PROJECT, source_id=source_id, fields=fields or {"name": "Project Name"})


@pytest.mark.asyncio
async def test_memory_store_round_trip() -> None:
    store = MemoryMappingStore()
    await store.save(_mapping())

    assert (await store.load(EntityKind.PROJECT, "file:projects.csv")).column_for("name") == "Project Name"
    assert await store.load(EntityKind.LEAD, "file:projects.csv") is None


class TestJsonFileMappingStore:
    """Tests for JsonFileMappingStore."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path) -> None:
        store = JsonFileMappingStore(tmp_path / "mappings.json")
        assert await store.load(EntityKind.PROJECT, "file:projects.csv") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path) -> None:
        path = tmp_path / "nested" / "mappings.json"
        store = JsonFileMappingStore(path)

        await store.save(_mapping(client="Cliente"))
        loaded = await store.load(EntityKind.PROJECT, "file:projects.csv")

        assert loaded.fields == {"client": "Cliente"}
        assert loaded.kind == EntityKind.PROJECT
        assert path.exists()

    @pytest.mark.asyncio
    async def test_save_keeps_other_sources(self, tmp_path) -> None:
        store = JsonFileMappingStore(tmp_path / "mappings.json")

        await store.save(_mapping("file:a.csv"))
        await store.save(_mapping("file:b.csv", name="Nombre"))
        await store.save(_mapping("file:a.csv", name="Title"))

        data = json.loads((tmp_path / "mappings.json").read_text())
        assert sorted(data) == ["project::file:a.csv", "project::file:b.csv"]
        assert (await store.load(EntityKind.PROJECT, "file:a.csv")).column_for("name") == "Title"
        assert (await store.load(EntityKind.PROJECT, "file:b.csv")).column_for("name") == "Nombre"

    @pytest.mark.asyncio
    async def test_corrupt_file_is_logged_and_ignored(self, tmp_path, caplog) -> None:
        path = tmp_path / "mappings.json"
        path.write_text("{broken")
        store = JsonFileMappingStore(path)

        with caplog.at_level(logging.WARNING):
            assert await store.load(EntityKind.PROJECT, "file:projects.csv") is None
        assert "Could not read field mappings" in caplog.text

        # Saving replaces the corrupt document
        await store.save(_mapping())
        assert await store.load(EntityKind.PROJECT, "file:projects.csv") is not None

    @pytest.mark.asyncio
    async def test_invalid_entry_is_ignored(self, tmp_path) -> None:
        path = tmp_path / "mappings.json"
        path.write_text(json.dumps({"project::file:projects.csv": {"kind": "spaceship"}}))
        store = JsonFileMappingStore(path)
        assert await store.load(EntityKind.PROJECT, "file:projects.csv") is None
