"""
Transition committer: runs one approved status change against the backend.

Order within a commit cycle is fixed:
  update_status → refresh → notification → loading cleared → gesture cleanup
"""
import logging
from typing import Callable, Optional

from .notify import Notifier
from .records import RecordStore
from .schema import FetchError, TransitionRequest, UpdateError

logger = logging.getLogger(__name__)


class TransitionCommitter:
    """Commits TransitionRequests and re-synchronises the record store."""

    def __init__(
        self,
        backend,
        store: RecordStore,
        notifier: Notifier,
        on_settled: Optional[Callable[[TransitionRequest], None]] = None,
    ):
        self.backend = backend
        self.store = store
        self.notifier = notifier
        self.on_settled = on_settled

    async def commit(self, request: TransitionRequest) -> bool:
        """Returns True only if both the update and the refresh succeeded."""
        try:
            with self.store.busy():
                return await self._run(request)
        finally:
            # Gesture state never outlives its commit cycle
            if self.on_settled is not None:
                self.on_settled(request)

    async def _run(self, request: TransitionRequest) -> bool:
        new_status = request.to_status.value
        try:
            await self.backend.update_status(request.record_id, request.to_status, request.reason)
        except UpdateError as e:
            logger.warning("Status update for %s failed: %s", request.record_id, e.message)
            self.notifier.error("Error", f"Failed to update status: {e.message}")
            return False

        logger.info(
            "Record %s moved %s → %s",
            request.record_id, request.from_status.value, new_status,
        )
        try:
            await self.store.refresh()
        except FetchError as e:
            logger.warning("Refresh after update of %s failed: %s", request.record_id, e.message)
            self.notifier.error("Error", f"Failed to refresh records: {e.message}")
            return False

        self.notifier.success("Success", f"Status updated to {new_status}")
        return True
