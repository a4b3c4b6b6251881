"""
Attendance board: the object a view binds to.

Wires record store, gesture normalizer, transition gate and committer
together, and exposes:
    - read-only bindings (lanes, counts, empty states, loading, modal, ghost)
    - gesture entry points (pointer and touch)
    - modal entry points (reason text, confirm, cancel)
    - refresh_data(), which never raises
"""
import logging
from typing import Dict, List, Optional

from .committer import TransitionCommitter
from .gate import TransitionGate
from .gestures import DragEvent, GestureNormalizer, Rect, ScrollGuard, Surface, TouchEvent
from .notify import Notifier
from .records import RecordStore
from .schema import (
    AttendanceStatus,
    FetchError,
    LANE_ORDER,
    ModalState,
    MoveIntent,
    ReasonPolicy,
    Record,
)

logger = logging.getLogger(__name__)


class AttendanceBoard:
    """Three-lane attendance board driven by pointer and touch gestures."""

    def __init__(
        self,
        backend,
        notifier: Optional[Notifier] = None,
        policy: Optional[ReasonPolicy] = None,
        surface: Optional[Surface] = None,
        ghost_width: float = 200,
        ghost_height: float = 100,
    ):
        self.notifier = notifier or Notifier()
        self.surface = surface or Surface(LANE_ORDER)
        self.store = RecordStore(backend, self.notifier)
        self.gestures = GestureNormalizer(
            self.surface,
            status_lookup=self.store.status_of,
            ghost_width=ghost_width,
            ghost_height=ghost_height,
        )
        self.committer = TransitionCommitter(
            backend, self.store, self.notifier,
            on_settled=lambda request: self.gestures.settle(request.session),
        )
        self.gate = TransitionGate(
            self.committer, self.notifier, policy=policy, on_cancel=self.gestures.cleanup
        )
        self.scroll_guard = ScrollGuard(self.surface, self.gestures)
        self.store.subscribe(self.surface.sync_cards)

    @classmethod
    def from_config(cls, config) -> "AttendanceBoard":
        return cls(
            config.build_backend(),
            notifier=config.build_notifier(),
            policy=config.reason_policy(),
            ghost_width=float(config.ghost_width),
            ghost_height=float(config.ghost_height),
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def mount(self) -> bool:
        """Attach document listeners and run the initial load."""
        self.scroll_guard.acquire()
        return await self.store.load()

    def unmount(self) -> None:
        self.scroll_guard.release()
        self.gestures.cleanup()

    async def __aenter__(self) -> "AttendanceBoard":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def layout(self, rects: Dict[AttendanceStatus, Rect]) -> None:
        """Tell the board where each lane is drawn."""
        for status, rect in rects.items():
            self.surface.place_lane(status, rect)

    # ── Bindings ─────────────────────────────────────────────────────────────

    @property
    def is_loading(self) -> bool:
        return self.store.is_loading

    @property
    def records(self):
        return self.store.records

    def lane(self, status: AttendanceStatus) -> List[Record]:
        return self.store.lane(status)

    def count(self, status: AttendanceStatus) -> int:
        return self.store.count(status)

    def show_empty(self, status: AttendanceStatus) -> bool:
        return self.store.is_lane_empty(status)

    @property
    def modal(self) -> ModalState:
        return self.gate.modal

    @property
    def is_reason_empty(self) -> bool:
        return self.gate.modal.is_reason_empty

    @property
    def ghost_style(self) -> str:
        return self.gestures.ghost_style

    def snapshot(self) -> dict:
        """Everything a view renders, as plain data."""
        return {
            "loading": self.is_loading,
            "lanes": [
                {
                    "status": status.value,
                    "count": self.count(status),
                    "empty": self.show_empty(status),
                    "records": [r.to_dict() for r in self.lane(status)],
                }
                for status in LANE_ORDER
            ],
            "modal": {
                "visible": self.modal.visible,
                "reason": self.modal.reason_text,
                "record_id": self.modal.pending_record_id,
                "target": self.modal.pending_to_status.value if self.modal.pending_to_status else None,
            },
            "dragging": self.gestures.is_dragging,
            "ghost_style": self.ghost_style,
        }

    # ── Pointer entry points ─────────────────────────────────────────────────

    def on_drag_start(self, event: DragEvent, record_id: str, status: AttendanceStatus) -> None:
        self.gestures.drag_start(event, record_id, status)

    def on_drag_over(self, event: DragEvent) -> None:
        self.gestures.drag_over(event)

    def on_drag_enter(self, event: DragEvent, lane_status: AttendanceStatus) -> None:
        self.gestures.drag_enter(event, lane_status)

    def on_drag_leave(self, event: DragEvent, lane_status: AttendanceStatus) -> None:
        self.gestures.drag_leave(event, lane_status)

    async def on_drop(self, event: DragEvent, lane_status: AttendanceStatus) -> Optional[MoveIntent]:
        intent = self.gestures.drop(event, lane_status)
        if intent is not None:
            await self.gate.submit(intent)
        return intent

    def on_drag_end(self, event: DragEvent, record_id: Optional[str] = None) -> None:
        self.gestures.drag_end(event, record_id)

    # ── Touch entry points ───────────────────────────────────────────────────

    def on_touch_start(self, event: TouchEvent, record_id: str, status: AttendanceStatus) -> None:
        self.gestures.touch_start(event, record_id, status)

    def on_touch_move(self, event: TouchEvent) -> None:
        self.gestures.touch_move(event)
        self.surface.dispatch(ScrollGuard.EVENT, event)

    async def on_touch_end(self, event: TouchEvent) -> Optional[MoveIntent]:
        intent = self.gestures.touch_end(event)
        if intent is not None:
            await self.gate.submit(intent)
        return intent

    # ── Modal entry points ───────────────────────────────────────────────────

    def on_reason_change(self, text: str) -> None:
        self.gate.update_reason_text(text)

    async def confirm(self) -> bool:
        return await self.gate.confirm()

    def cancel(self) -> None:
        self.gate.cancel()

    # ── Manual refresh ───────────────────────────────────────────────────────

    async def refresh_data(self) -> bool:
        """Reload the records. Never raises; a failure becomes one notification."""
        try:
            await self.store.refresh()
            return True
        except FetchError as e:
            logger.warning("Manual refresh failed: %s", e.message)
            self.notifier.error("Error", "Failed to refresh data")
            return False
