"""
Record store: the board's in-memory collection and its lane partitions.

The collection is replaced wholesale on every successful fetch and never
patched. Lanes, counts and empty-state flags are derived on every read.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .notify import Notifier
from .schema import AttendanceStatus, FetchError, LANE_ORDER, Record, RecordCollection

logger = logging.getLogger(__name__)


class RecordStore:
    """Holds the current records and the global loading flag."""

    def __init__(self, backend, notifier: Notifier):
        self.backend = backend
        self.notifier = notifier
        self._records: RecordCollection = ()
        self._busy = 0
        # Nothing fetched yet counts as loading, so empty lanes are not shown early
        self._loaded = False
        self.listeners: List[Callable[[RecordCollection], None]] = []

    # ── Derived views ────────────────────────────────────────────────────────

    @property
    def records(self) -> RecordCollection:
        return self._records

    @property
    def is_loading(self) -> bool:
        return self._busy > 0 or not self._loaded

    def lane(self, status: AttendanceStatus) -> List[Record]:
        """Records whose status puts them in this lane."""
        return [r for r in self._records if r.status == status]

    def count(self, status: AttendanceStatus) -> int:
        return len(self.lane(status))

    def is_lane_empty(self, status: AttendanceStatus) -> bool:
        """True when the lane has nothing to show and no load is pending."""
        return self.count(status) == 0 and not self.is_loading

    def lanes(self) -> Dict[AttendanceStatus, List[Record]]:
        return {status: self.lane(status) for status in LANE_ORDER}

    def find(self, record_id: str) -> Optional[Record]:
        for record in self._records:
            if record.record_id == record_id:
                return record
        return None

    def status_of(self, record_id: str) -> Optional[AttendanceStatus]:
        """Live status of a record, or None if it is not on the board."""
        record = self.find(record_id)
        return record.status if record else None

    # ── Loading ──────────────────────────────────────────────────────────────

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Hold the loading flag for the duration of the block."""
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1

    def subscribe(self, listener: Callable[[RecordCollection], None]) -> None:
        """Call listener with the new collection after every replacement."""
        self.listeners.append(listener)

    async def _fetch(self) -> None:
        try:
            records = await self.backend.fetch_records()
        finally:
            self._loaded = True
        self._records = tuple(records)
        logger.debug("Record collection replaced (%d records)", len(self._records))
        for listener in self.listeners:
            listener(self._records)

    async def load(self) -> bool:
        """Initial fetch. Failures become one error notification."""
        with self.busy():
            try:
                await self._fetch()
                return True
            except FetchError as e:
                logger.warning("Initial load failed: %s", e.message)
                self.notifier.error("Error", f"Failed to load records: {e.message}")
                return False

    async def refresh(self) -> None:
        """Re-fetch and replace the collection. FetchError propagates to the caller."""
        with self.busy():
            await self._fetch()
