"""Persistence for per-kind, per-source field mappings."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
from pydantic import ValidationError

from tabsync.models.field_mapping import FieldMapping, mapping_key
from tabsync.models.records import EntityKind

logger = logging.getLogger(__name__)


class MappingStore(ABC):
    """Abstract base class for field mapping storage."""

    @abstractmethod
    async def load(self, kind: EntityKind, source_id: str) -> Optional[FieldMapping]:
        """Load the saved mapping for a kind and source, if any."""
        pass

    @abstractmethod
    async def save(self, mapping: FieldMapping) -> None:
        """Save a mapping, replacing any previous one for its kind and source."""
        pass


class MemoryMappingStore(MappingStore):
    """Mappings held in a dict for the life of the process."""

    def __init__(self) -> None:
        self.mappings: dict[str, FieldMapping] = {}

    async def load(self, kind: EntityKind, source_id: str) -> Optional[FieldMapping]:
        return self.mappings.get(mapping_key(kind, source_id))

    async def save(self, mapping: FieldMapping) -> None:
        self.mappings[mapping.storage_key] = mapping


class JsonFileMappingStore(MappingStore):
    """All mappings in one JSON document: ``{"kind::source": mapping}``.

    A missing file is an empty store. An unreadable or corrupt file is
    logged and treated as empty, so a bad mapping file costs an auto-map
    rather than the import.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    async def _read_all(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read field mappings from %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed field mappings file %s", self.path)
            return {}
        return data

    async def load(self, kind: EntityKind, source_id: str) -> Optional[FieldMapping]:
        data = await self._read_all()
        raw = data.get(mapping_key(kind, source_id))
        if raw is None:
            return None
        try:
            return FieldMapping.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring invalid saved mapping for %s: %s", source_id, e)
            return None

    async def save(self, mapping: FieldMapping) -> None:
        data = await self._read_all()
        data[mapping.storage_key] = mapping.model_dump(mode="json")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, sort_keys=True))
        logger.debug("Saved field mapping %s to %s", mapping.storage_key, self.path)
