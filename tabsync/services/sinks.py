"""Row sinks: where reconciled records are written."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from tabsync.services.import_service.errors import SinkUnavailable

logger = logging.getLogger(__name__)


class RowSink(ABC):
    """Abstract base class for record sinks."""

    @abstractmethod
    async def write(self, record: Any) -> None:
        """Write (insert or update) one canonical record.

        Raises:
            SinkUnavailable: If the record could not be written.
        """
        pass


class MemorySink(RowSink):
    """Collects written records in memory, keyed by id."""

    def __init__(self) -> None:
        self.records: dict[str, Any] = {}
        self.writes = 0

    async def write(self, record: Any) -> None:
        self.records[record.id] = record
        self.writes += 1


class HttpUpsertSink(RowSink):
    """POSTs each record as JSON to an upsert endpoint."""

    def __init__(
        self,
        url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.access_token = access_token
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _post(self, client: httpx.AsyncClient, record: Any) -> None:
        response = await client.post(
            self.url,
            content=record.model_dump_json(),
            headers=self._headers(),
        )
        response.raise_for_status()

    async def write(self, record: Any) -> None:
        try:
            if self._client is not None:
                await self._post(self._client, record)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await self._post(client, record)
        except httpx.HTTPStatusError as e:
            raise SinkUnavailable(record.id, f"status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SinkUnavailable(record.id, str(e) or type(e).__name__) from e
