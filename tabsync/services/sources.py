"""Row sources: where raw rows come from.

A source delivers the whole row set in a stable order, with the column
names known up front. Anything that stops the row set from being read
raises SourceUnavailable; nothing is partially delivered.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

import aiofiles
import httpx

from tabsync.services.import_service.constants import MAX_ROWS
from tabsync.services.import_service.errors import SourceUnavailable
from tabsync.services.import_service.parsers import get_file_extension, parse_file

logger = logging.getLogger(__name__)

# Allowed file extensions
ALLOWED_EXTENSIONS = {"csv", "xlsx", "xlsm"}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_PAGE_SIZE = 499


@dataclass
class RowBatch:
    """Rows read from a source, with their column names.

    ``labels`` maps internal column names to display names where the
    source has both (remote lists).
    """

    columns: list[str]
    rows: list[dict[str, Any]]
    labels: dict[str, str] = field(default_factory=dict)


def collect_columns(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Ordered union of the keys of all rows."""
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def flatten_record(record: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested objects into dotted keys ("VendorRef.name", "Line.0.Amount")."""
    flat: dict[str, Any] = {}
    for key, value in record.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_record(value, f"{name}."))
        elif isinstance(value, list):
            for i, item in enumerate(value):
                if isinstance(item, Mapping):
                    flat.update(flatten_record(item, f"{name}.{i}."))
                else:
                    flat[f"{name}.{i}"] = item
        else:
            flat[name] = value
    return flat


class RowSource(ABC):
    """Abstract base class for row sources."""

    source_id: str
    # Project imports from this source apply the region filter by default
    region_filtered = False

    @abstractmethod
    async def fetch(self) -> RowBatch:
        """Read the full row set.

        Raises:
            SourceUnavailable: If the rows cannot be read at all.
        """
        pass


class StaticRowSource(RowSource):
    """Rows already in memory."""

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any]],
        source_id: str = "static",
        columns: Optional[list[str]] = None,
    ) -> None:
        self.rows = [dict(row) for row in rows]
        self.source_id = source_id
        self.columns = columns

    async def fetch(self) -> RowBatch:
        columns = self.columns if self.columns is not None else collect_columns(self.rows)
        return RowBatch(columns=list(columns), rows=[dict(row) for row in self.rows])


class FileRowSource(RowSource):
    """An uploaded CSV or XLSX spreadsheet (first sheet, header row)."""

    def __init__(
        self,
        path: Path | str,
        max_rows: int = MAX_ROWS,
        content: Optional[bytes] = None,
    ) -> None:
        """Initialize the file source.

        Args:
            path: Spreadsheet path. Its extension selects the parser.
            max_rows: Maximum number of data rows read.
            content: File bytes, when already in memory (e.g. an upload).
        """
        self.path = Path(path)
        self.max_rows = max_rows
        self.content = content
        self.source_id = f"file:{self.path.name}"

    async def _read(self) -> bytes:
        if self.content is not None:
            return self.content
        try:
            async with aiofiles.open(self.path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise SourceUnavailable(self.source_id, f"cannot read file: {e.strerror or e}") from e

    async def fetch(self) -> RowBatch:
        ext = get_file_extension(self.path.name)
        if ext not in ALLOWED_EXTENSIONS:
            raise SourceUnavailable(
                self.source_id,
                f"Unsupported file type '.{ext}'. Allowed: CSV, XLSX",
            )

        content = await self._read()
        if len(content) > MAX_FILE_SIZE:
            raise SourceUnavailable(self.source_id, "File exceeds maximum size of 10 MB")

        try:
            headers, rows = parse_file(self.path.name, content, self.max_rows)
        except ValueError as e:
            raise SourceUnavailable(self.source_id, str(e)) from e

        if not rows:
            raise SourceUnavailable(self.source_id, "Spreadsheet has no data rows")

        logger.info("Read %d rows from %s", len(rows), self.path.name)
        return RowBatch(columns=headers, rows=rows)


class _HttpSource(RowSource):
    """Shared httpx client handling for remote sources."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        # A caller-supplied client is reused and left open
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client


class RemoteListRowSource(_HttpSource):
    """A paginated remote list (Graph-style ``/sites/{site}/lists/{list}``).

    Each list item becomes one row keyed by the item's field internal
    names, plus ``id`` and ``createdDateTime``.
    """

    region_filtered = True

    def __init__(
        self,
        site_id: str,
        list_id: str,
        access_token: Optional[str] = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 30.0,
        with_labels: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.site_id = site_id
        self.list_id = list_id
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.with_labels = with_labels
        self.source_id = f"list:{site_id}/{list_id}"

    @property
    def list_url(self) -> str:
        return f"{self.base_url}/sites/{self.site_id}/lists/{self.list_id}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _get_json(self, client: httpx.AsyncClient, url: str) -> dict[str, Any]:
        try:
            response = await client.get(url, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(
                self.source_id, f"list request failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.source_id, f"list request failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(self.source_id, "list response is not JSON") from e
        if not isinstance(data, dict):
            raise SourceUnavailable(self.source_id, "unexpected list response")
        return data

    @staticmethod
    def item_to_row(item: Mapping[str, Any]) -> dict[str, Any]:
        """Convert one list item into a raw row."""
        row: dict[str, Any] = {
            "id": item.get("id"),
            "createdDateTime": item.get("createdDateTime"),
        }
        fields = item.get("fields") or {}
        for key, value in fields.items():
            if key not in row or row[key] is None:
                row[key] = value
        return row

    async def fetch_columns(self) -> dict[str, str]:
        """List the editable, visible columns: internal name -> display name.

        Raises:
            SourceUnavailable: If the column listing cannot be read.
        """
        async with self._session() as client:
            data = await self._get_json(client, f"{self.list_url}/columns")

        columns: dict[str, str] = {}
        for column in data.get("value", []):
            if column.get("readOnly") or column.get("hidden"):
                continue
            name = column.get("name")
            if name:
                columns[name] = column.get("displayName") or name
        return columns

    async def fetch(self) -> RowBatch:
        rows: list[dict[str, Any]] = []
        url: Optional[str] = f"{self.list_url}/items?expand=fields&$top={self.page_size}"
        pages = 0

        async with self._session() as client:
            while url:
                data = await self._get_json(client, url)
                for item in data.get("value", []):
                    if isinstance(item, Mapping):
                        rows.append(self.item_to_row(item))
                url = data.get("@odata.nextLink")
                pages += 1

        labels = await self.fetch_columns() if self.with_labels else {}
        columns = collect_columns(rows)
        for name in labels:
            if name not in columns:
                columns.append(name)

        logger.info("Read %d items in %d pages from %s", len(rows), pages, self.source_id)
        return RowBatch(columns=columns, rows=rows, labels=labels)


class WebhookRowSource(_HttpSource):
    """Rows returned by an automation webhook (e.g. accounting bills).

    The webhook is POSTed ``{"action": ..., "timestamp": ...}`` and may
    answer with a bare list or ``{"bills": [...]}`` / ``{"data": [...]}``.
    Nested objects are flattened into dotted column names.
    """

    def __init__(
        self,
        url: str,
        *,
        action: str = "fetch_bills",
        source_id: str = "webhook",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.url = url
        self.action = action
        self.source_id = source_id

    def _extract(self, data: Any) -> list[Any]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("bills", "data"):
                if isinstance(data.get(key), list):
                    return data[key]
        raise SourceUnavailable(self.source_id, "unexpected webhook response")

    async def fetch(self) -> RowBatch:
        if not self.url:
            raise SourceUnavailable(self.source_id, "no webhook URL configured")

        payload = {
            "action": self.action,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        async with self._session() as client:
            try:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise SourceUnavailable(
                    self.source_id, f"webhook failed with status {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise SourceUnavailable(self.source_id, f"webhook request failed: {e}") from e
            except ValueError as e:
                raise SourceUnavailable(self.source_id, "webhook response is not JSON") from e

        rows = [flatten_record(item) for item in self._extract(data) if isinstance(item, Mapping)]
        logger.info("Webhook %s returned %d records", self.source_id, len(rows))
        return RowBatch(columns=collect_columns(rows), rows=rows)
