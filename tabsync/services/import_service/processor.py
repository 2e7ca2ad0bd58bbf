"""Batch processing: source -> mapping -> rows -> reconcile -> sink."""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from tabsync.config.schema import ImportConfig
from tabsync.models.field_mapping import FieldMapping
from tabsync.models.import_result import ImportResult, ImportStatus
from tabsync.models.records import EntityKind

from .columns import suggest_field_mapping
from .converters import MappedRow, RowFilter, map_row
from .errors import RowMappingFailure, SinkUnavailable, SourceUnavailable
from .reconcile import MergePolicy, reconcile

if TYPE_CHECKING:
    from tabsync.services.mapping_store import MappingStore
    from tabsync.services.sinks import RowSink
    from tabsync.services.sources import RowBatch, RowSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ImportOrchestrator:
    """Runs one import batch for one entity kind from one source.

    Rows are processed sequentially in source order. Per-row problems are
    counted in the result; only an unreadable source raises.
    """

    def __init__(
        self,
        source: "RowSource",
        kind: EntityKind,
        *,
        mapping_store: Optional["MappingStore"] = None,
        sink: Optional["RowSink"] = None,
        config: Optional[ImportConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            source: Where rows are read from.
            kind: Entity kind to import.
            mapping_store: Where field mappings are loaded from and saved to.
            sink: Where added/updated records are written, if anywhere.
            config: Import defaults and throttling. Loaded from settings if omitted.
            on_progress: Called as ``on_progress(processed, total)`` after every row.
        """
        if config is None:
            from tabsync.config import settings

            config = settings.imports

        self.source = source
        self.kind = EntityKind(kind)
        self.mapping_store = mapping_store
        self.sink = sink
        self.config = config
        self.on_progress = on_progress

    async def resolve_mapping(self, batch: "RowBatch", remap: bool = False) -> FieldMapping:
        """Load the saved mapping for this source and auto-fill unset fields.

        A mapping is saved whenever auto-mapping changed it, so each new
        schema is auto-mapped once and the user's choices are kept after.
        """
        source_id = self.source.source_id
        saved = None
        if self.mapping_store is not None:
            saved = await self.mapping_store.load(self.kind, source_id)

        mapping = suggest_field_mapping(
            self.kind,
            batch.columns,
            existing=saved,
            overwrite=remap,
            labels=batch.labels,
            source_id=source_id,
        )

        if self.mapping_store is not None and (saved is None or remap or saved.fields != mapping.fields):
            await self.mapping_store.save(mapping)
            logger.info("Saved %s field mapping for %s", self.kind.value, source_id)
        return mapping

    def default_row_filter(self) -> Optional[RowFilter]:
        """Region filter for project imports.

        Applies when enabled in configuration or when the source asks for
        it (remote lists). Rows are only filtered if an area column is mapped.
        """
        enabled = self.config.apply_region_filter or self.source.region_filtered
        if self.kind == EntityKind.PROJECT and enabled:
            return RowFilter("area", self.config.region_filter_target)
        return None

    async def run(
        self,
        existing: Iterable[Any] = (),
        *,
        mapping: Optional[FieldMapping] = None,
        row_filter: Optional[RowFilter] = None,
        known_projects: Iterable[Any] = (),
        remap: bool = False,
        policy: Optional[MergePolicy] = None,
        now: Optional[datetime] = None,
    ) -> ImportResult:
        """Import the source into a copy of ``existing``.

        Args:
            existing: Current collection of records of this kind.
            mapping: Explicit field mapping; bypasses the store and auto-mapping.
            row_filter: Row filter; defaults to the configured region filter.
            known_projects: Projects that tickets and purchases may link to.
            remap: Re-run auto-mapping over every field.
            policy: Merge policy for semantic duplicates.
            now: Timestamp used for missing dates.

        Returns:
            ImportResult with counts and the merged collection.

        Raises:
            SourceUnavailable: If the source could not be read. Nothing is merged.
        """
        result = ImportResult(
            kind=self.kind,
            source_id=self.source.source_id,
            status=ImportStatus.PROCESSING,
        )

        try:
            batch = await self.source.fetch()
        except SourceUnavailable as e:
            result.status = ImportStatus.FAILED
            result.errors.append(str(e))
            logger.error("Import of %s aborted: %s", self.kind.value, e)
            raise

        if mapping is None:
            mapping = await self.resolve_mapping(batch, remap=remap)
        if row_filter is None:
            row_filter = self.default_row_filter()

        known = tuple(known_projects)
        mapped_rows: list[MappedRow] = []
        total = len(batch.rows)
        result.rows_read = total

        for i, row in enumerate(batch.rows, start=1):
            try:
                mapped = map_row(
                    self.kind,
                    row,
                    mapping,
                    config=self.config,
                    known_projects=known,
                    row_filter=row_filter,
                    now=now,
                    row_number=i,
                )
                if mapped is None:
                    result.filtered += 1
                else:
                    mapped_rows.append(mapped)
                    result.degraded += len(mapped.degraded)
            except RowMappingFailure as e:
                result.failed += 1
                result.errors.append(str(e))
                logger.warning("Import error on row %d: %s", i, e.reason)
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Row {i}: {str(e)}")
                logger.warning("Import error on row %d: %s", i, e)

            if self.on_progress is not None:
                self.on_progress(i, total)

        outcome = reconcile(self.kind, mapped_rows, existing, policy)
        result.records = outcome.records
        result.added = outcome.added
        result.updated = outcome.updated
        result.skipped = outcome.skipped

        if self.sink is not None and outcome.changed:
            await self.write_records(outcome.changed, result)

        result.status = ImportStatus.COMPLETED
        logger.info(
            "Imported %s from %s: %s (%d fields defaulted)",
            self.kind.value,
            self.source.source_id,
            result.summary(),
            result.degraded,
        )
        return result

    async def write_records(self, records: list[Any], result: ImportResult) -> None:
        """Write records to the sink in small chunks with a pause between them.

        Failed writes are counted; records already written stay written.
        """
        size = max(1, self.config.write_chunk_size)
        for start in range(0, len(records), size):
            if start:
                await asyncio.sleep(self.config.write_chunk_delay)
            chunk = records[start:start + size]
            outcomes = await asyncio.gather(
                *(self.sink.write(record) for record in chunk),
                return_exceptions=True,
            )
            for record, outcome in zip(chunk, outcomes):
                if isinstance(outcome, SinkUnavailable):
                    result.write_failures += 1
                    result.errors.append(str(outcome))
                    logger.warning("Could not save %s: %s", record.id, outcome.reason)
                elif isinstance(outcome, BaseException):
                    raise outcome
