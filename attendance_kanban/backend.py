"""
Record backends: where the board fetches records and sends status changes.

Every backend implements the same two coroutines:
    fetch_records()                              -> list[Record] | FetchError
    update_status(record_id, new_status, reason) -> None | UpdateError

InMemoryBackend - dictionary-backed, for tests and the verification script
SqliteBackend   - local AttendanceStore
HttpBackend     - the board server's JSON API over requests
"""
import asyncio
import logging
import sqlite3
from typing import Dict, Iterable, List, Optional, Protocol

import requests
from requests.utils import quote

from .schema import AttendanceStatus, FetchError, Record, UpdateError
from .store import AttendanceStore

logger = logging.getLogger(__name__)


class RecordBackend(Protocol):
    async def fetch_records(self) -> List[Record]:
        ...

    async def update_status(self, record_id: str, new_status: AttendanceStatus, reason: str) -> None:
        ...


class InMemoryBackend:
    """
    Records in a dict. fail_fetch / fail_update hold a message to fail the next
    call with (cleared after use unless sticky=True).
    """

    def __init__(self, records: Iterable[Record] = ()):
        self.records: Dict[str, Record] = {r.record_id: r for r in records}
        self.fail_fetch: Optional[str] = None
        self.fail_update: Optional[str] = None
        self.sticky = False
        self.updates: List[tuple] = []
        self.fetch_count = 0

    def _take(self, attr: str) -> Optional[str]:
        message = getattr(self, attr)
        if message is not None and not self.sticky:
            setattr(self, attr, None)
        return message

    async def fetch_records(self) -> List[Record]:
        self.fetch_count += 1
        message = self._take("fail_fetch")
        if message is not None:
            raise FetchError(message)
        return list(self.records.values())

    async def update_status(self, record_id: str, new_status: AttendanceStatus, reason: str) -> None:
        self.updates.append((record_id, new_status, reason))
        message = self._take("fail_update")
        if message is not None:
            raise UpdateError(message)
        record = self.records.get(record_id)
        if record is None:
            raise UpdateError(f"Record {record_id} not found")
        self.records[record_id] = Record(
            record_id=record.record_id,
            status=new_status,
            name=record.name,
            reason=reason,
            extra=dict(record.extra),
        )


class SqliteBackend:
    """Runs AttendanceStore calls off the event loop."""

    def __init__(self, store: AttendanceStore, changed_by: str = "board"):
        self.store = store
        self.changed_by = changed_by

    async def fetch_records(self) -> List[Record]:
        try:
            return await asyncio.to_thread(self.store.list_all)
        except (sqlite3.Error, ValueError) as e:
            raise FetchError(str(e)) from e

    async def update_status(self, record_id: str, new_status: AttendanceStatus, reason: str) -> None:
        try:
            await asyncio.to_thread(
                self.store.update_status, record_id, new_status, reason, self.changed_by
            )
        except (sqlite3.Error, ValueError) as e:
            raise UpdateError(str(e)) from e


class HttpBackend:
    """Client for the board server's /api/records endpoints."""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json().get("error") or response.reason
        except (ValueError, AttributeError):
            return response.reason or f"HTTP {response.status_code}"

    def _fetch(self) -> List[Record]:
        try:
            r = self.session.get(f"{self.base_url}/api/records",
                                 headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Board server unreachable: {e}") from e
        if not r.ok:
            logger.warning("GET /api/records returned %s", r.status_code)
            raise FetchError(self._error_message(r))
        try:
            items = r.json().get("records", [])
            if not isinstance(items, list):
                raise FetchError(f"Malformed record list: expected a list, got {type(items).__name__}")
            return [Record.from_dict(item) for item in items]
        except (ValueError, AttributeError, TypeError) as e:
            raise FetchError(f"Malformed record list: {e}") from e

    def _update(self, record_id: str, new_status: AttendanceStatus, reason: str) -> None:
        try:
            r = self.session.post(
                f"{self.base_url}/api/records/{quote(record_id, safe='')}/status",
                json={"status": new_status.value, "reason": reason},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpdateError(f"Board server unreachable: {e}") from e
        if not r.ok:
            logger.warning("Status update for %s returned %s", record_id, r.status_code)
            raise UpdateError(self._error_message(r))

    async def fetch_records(self) -> List[Record]:
        return await asyncio.to_thread(self._fetch)

    async def update_status(self, record_id: str, new_status: AttendanceStatus, reason: str) -> None:
        await asyncio.to_thread(self._update, record_id, new_status, reason)
