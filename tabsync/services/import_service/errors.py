"""Exceptions raised by the import engine.

Per-row problems are absorbed into batch counters; only structural
failures (the source cannot be read at all) propagate to the caller.
"""


class TabSyncError(Exception):
    """Base class for import engine errors."""


class SourceUnavailable(TabSyncError):
    """The row source could not be read at all. Aborts the whole batch."""

    def __init__(self, source_id: str, reason: str) -> None:
        self.source_id = source_id
        self.reason = reason
        super().__init__(f"Could not read {source_id}: {reason}")


class RowMappingFailure(TabSyncError):
    """A row could not produce a minimally valid record. The row is dropped."""

    def __init__(self, row_number: int, reason: str) -> None:
        self.row_number = row_number
        self.reason = reason
        super().__init__(f"Row {row_number}: {reason}")


class SinkUnavailable(TabSyncError):
    """A reconciled record could not be written to the remote sink."""

    def __init__(self, record_id: str, reason: str) -> None:
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Could not save {record_id}: {reason}")
