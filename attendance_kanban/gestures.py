"""
Gesture normalizer: pointer drag-and-drop and touch sequences → MoveIntent.

Pointer protocol (native drag events):
  drag_start → (drag_enter / drag_over / drag_leave)* → drop? → drag_end

Touch protocol (no native drop events, simulated by hit-testing):
  touch_start → touch_move* → touch_end

Both adapters produce the same MoveIntent, so nothing downstream knows which
input modality was used. The view layer is modelled by Surface: lanes with
on-screen bounds, cards, CSS-like marker sets and document-level listeners.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from .schema import AttendanceStatus, DragSession, Modality, MoveIntent

logger = logging.getLogger(__name__)

# Visual markers
DRAGGING = "dragging"                # card lifted by a pointer drag
TOUCH_DRAGGING = "touch-dragging"    # card lifted by a touch
DRAG_OVER = "drag-over"              # lane under a pointer drag
TOUCH_DRAG_OVER = "touch-drag-over"  # lane under a touch

CARD_MARKERS = (DRAGGING, TOUCH_DRAGGING)
LANE_MARKERS = (DRAG_OVER, TOUCH_DRAG_OVER)

# Native drag payload formats
TEXT_FORMAT = "text/plain"
JSON_FORMAT = "application/json"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# View surface
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class Rect:
    """On-screen bounding rectangle (client coordinates)."""
    left: float
    top: float
    right: float
    bottom: float

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass
class LaneElement:
    status: AttendanceStatus
    rect: Optional[Rect] = None
    markers: Set[str] = field(default_factory=set)


@dataclass
class CardElement:
    record_id: str
    status: Optional[AttendanceStatus] = None
    markers: Set[str] = field(default_factory=set)


class Surface:
    """Rendered lanes and cards, as seen by the gesture handlers."""

    def __init__(self, statuses=None):
        self.lanes: Dict[AttendanceStatus, LaneElement] = {
            status: LaneElement(status) for status in (statuses or list(AttendanceStatus))
        }
        self.cards: Dict[str, CardElement] = {}
        self.listeners: Dict[str, List[Callable]] = {}

    def place_lane(self, status: AttendanceStatus, rect: Rect) -> None:
        """Record where a lane is laid out on screen."""
        self.lanes[status].rect = rect

    def card(self, record_id: str) -> CardElement:
        if record_id not in self.cards:
            self.cards[record_id] = CardElement(record_id)
        return self.cards[record_id]

    def sync_cards(self, records) -> None:
        """Re-render cards for a new collection. Surviving cards keep their markers."""
        cards = {}
        for record in records:
            element = self.cards.get(record.record_id) or CardElement(record.record_id)
            element.status = record.status
            cards[record.record_id] = element
        self.cards = cards

    def lane_at(self, x: float, y: float) -> Optional[LaneElement]:
        """The lane enclosing the point, if any."""
        for lane in self.lanes.values():
            if lane.rect is not None and lane.rect.contains(x, y):
                return lane
        return None

    def add_listener(self, event_type: str, callback: Callable) -> None:
        self.listeners.setdefault(event_type, []).append(callback)

    def remove_listener(self, event_type: str, callback: Callable) -> None:
        callbacks = self.listeners.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def dispatch(self, event_type: str, event) -> None:
        """Deliver a document-level event to its listeners."""
        for callback in list(self.listeners.get(event_type, [])):
            callback(event)

    def marked_cards(self, marker: str) -> List[str]:
        return [c.record_id for c in self.cards.values() if marker in c.markers]

    def marked_lanes(self, marker: str) -> List[AttendanceStatus]:
        return [lane.status for lane in self.lanes.values() if marker in lane.markers]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Raw input events
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class InputEvent:
    """Base for raw input events; records whether default handling was suppressed."""

    def __init__(self):
        self.default_prevented = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class DataTransfer:
    """Native drag payload, keyed by format."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def set_data(self, fmt: str, value: str) -> None:
        self.data[fmt] = value

    def get_data(self, fmt: str) -> str:
        return self.data.get(fmt, "")


class DragEvent(InputEvent):
    def __init__(self, data_transfer: Optional[DataTransfer] = None):
        super().__init__()
        self.data_transfer = data_transfer if data_transfer is not None else DataTransfer()


@dataclass(frozen=True)
class TouchPoint:
    client_x: float
    client_y: float


class TouchEvent(InputEvent):
    def __init__(self, touches=None, changed_touches=None):
        super().__init__()
        self.touches: List[TouchPoint] = list(touches or [])
        self.changed_touches: List[TouchPoint] = list(changed_touches or self.touches)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Normalizer
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class GestureNormalizer:
    """
    Owns the single DragSession and translates raw events into MoveIntents.

    Handlers return a MoveIntent when a gesture completes a move, else None.
    status_lookup gives the live status of a record; when it knows the record
    it wins over the status captured at gesture start.
    """

    def __init__(
        self,
        surface: Surface,
        status_lookup: Optional[Callable[[str], Optional[AttendanceStatus]]] = None,
        ghost_width: float = 200,
        ghost_height: float = 100,
    ):
        self.surface = surface
        self.status_lookup = status_lookup
        self.ghost_width = ghost_width
        self.ghost_height = ghost_height
        self.session = DragSession()
        self.is_dragging = False
        # Bumped by every gesture start; stamped on the intents it produces
        self.generation = 0

    # ── Session helpers ──────────────────────────────────────────────────────

    def _begin(self, record_id: str, status: AttendanceStatus, modality: Modality,
               x: float = 0.0, y: float = 0.0) -> None:
        # One session at a time: drop whatever the previous gesture left behind
        self.cleanup()
        self.generation += 1
        self.session = DragSession(
            record_id=record_id,
            from_status=status,
            modality=modality,
            start_x=x,
            start_y=y,
            current_x=x,
            current_y=y,
        )

    def _live_status(self, record_id: str, captured: AttendanceStatus) -> AttendanceStatus:
        if self.status_lookup is not None:
            live = self.status_lookup(record_id)
            if live is not None:
                if live != captured:
                    logger.info(
                        "Record %s moved from %s to %s during the drag",
                        record_id, captured.value, live.value,
                    )
                return live
        return captured

    def _intent(self, record_id: str, from_status: AttendanceStatus,
                to_status: AttendanceStatus) -> Optional[MoveIntent]:
        if from_status == to_status:
            logger.debug("Record %s released on its own lane (%s)", record_id, to_status.value)
            return None
        return MoveIntent(record_id, from_status, to_status, session=self.generation)

    def cleanup(self) -> None:
        """Clear the session and every marker on every card and lane."""
        self.session = DragSession()
        self.is_dragging = False
        for card in self.surface.cards.values():
            card.markers.difference_update(CARD_MARKERS)
        for lane in self.surface.lanes.values():
            lane.markers.difference_update(LANE_MARKERS)

    def settle(self, session: int) -> None:
        """Clean up after the commit of a gesture, unless a newer gesture has started."""
        if session != self.generation:
            logger.debug("Gesture %d superseded by %d, keeping its state", session, self.generation)
            return
        self.cleanup()

    # ── Pointer path ─────────────────────────────────────────────────────────

    def drag_start(self, event: DragEvent, record_id: str, status: AttendanceStatus) -> None:
        self._begin(record_id, status, Modality.POINTER)
        # The drop target reads the payload, not the session
        event.data_transfer.set_data(TEXT_FORMAT, record_id)
        event.data_transfer.set_data(JSON_FORMAT, json.dumps({
            "recordId": record_id,
            "currentStatus": status.value,
        }))
        self.surface.card(record_id).markers.add(DRAGGING)

    def drag_over(self, event: DragEvent) -> None:
        event.prevent_default()

    def drag_enter(self, event: DragEvent, lane_status: AttendanceStatus) -> None:
        event.prevent_default()
        self.surface.lanes[lane_status].markers.add(DRAG_OVER)

    def drag_leave(self, event: DragEvent, lane_status: AttendanceStatus) -> None:
        self.surface.lanes[lane_status].markers.discard(DRAG_OVER)

    def drop(self, event: DragEvent, lane_status: AttendanceStatus) -> Optional[MoveIntent]:
        event.prevent_default()
        self.surface.lanes[lane_status].markers.discard(DRAG_OVER)

        raw = event.data_transfer.get_data(JSON_FORMAT)
        try:
            payload = json.loads(raw)
            record_id = str(payload["recordId"])
            captured = AttendanceStatus.from_str(payload["currentStatus"])
        except (ValueError, KeyError, TypeError) as e:
            logger.debug("Ignoring drop without a usable payload: %s", e)
            return None

        return self._intent(record_id, self._live_status(record_id, captured), lane_status)

    def drag_end(self, event: DragEvent, record_id: Optional[str] = None) -> None:
        """Runs after every pointer drag, dropped or abandoned."""
        if record_id is not None and record_id in self.surface.cards:
            self.surface.cards[record_id].markers.discard(DRAGGING)
        else:
            for card in self.surface.cards.values():
                card.markers.discard(DRAGGING)
        self.session = DragSession()

    # ── Touch path ───────────────────────────────────────────────────────────

    def touch_start(self, event: TouchEvent, record_id: str, status: AttendanceStatus) -> None:
        if not event.touches:
            return
        touch = event.touches[0]
        self._begin(record_id, status, Modality.TOUCH, touch.client_x, touch.client_y)
        self.surface.card(record_id).markers.add(TOUCH_DRAGGING)
        event.prevent_default()

    def touch_move(self, event: TouchEvent) -> None:
        if not self.session.active or not event.touches:
            logger.debug("Ignoring touch move without an active session")
            return
        touch = event.touches[0]
        self.session.current_x = touch.client_x
        self.session.current_y = touch.client_y
        self.is_dragging = True

        target = self.surface.lane_at(touch.client_x, touch.client_y)
        for lane in self.surface.lanes.values():
            if lane is target:
                lane.markers.add(TOUCH_DRAG_OVER)
            else:
                lane.markers.discard(TOUCH_DRAG_OVER)
        event.prevent_default()

    def touch_end(self, event: TouchEvent) -> Optional[MoveIntent]:
        if not self.session.active:
            logger.debug("Ignoring touch end without an active session")
            return None

        if event.changed_touches:
            x, y = event.changed_touches[0].client_x, event.changed_touches[0].client_y
        else:
            x, y = self.session.current_x, self.session.current_y

        intent = None
        lane = self.surface.lane_at(x, y)
        if lane is not None:
            record_id = self.session.record_id
            from_status = self._live_status(record_id, self.session.from_status)
            intent = self._intent(record_id, from_status, lane.status)

        self.cleanup()
        return intent

    # ── Ghost indicator ──────────────────────────────────────────────────────

    @property
    def ghost_position(self) -> Tuple[float, float]:
        """(left, top) of the ghost, centred on the finger."""
        return (
            self.session.current_x - self.ghost_width / 2,
            self.session.current_y - self.ghost_height / 2,
        )

    @property
    def ghost_style(self) -> str:
        left, top = self.ghost_position
        return (
            f"position: fixed; top: {top:g}px; left: {left:g}px; "
            f"pointer-events: none; z-index: 9999;"
        )


class ScrollGuard:
    """
    Document-level touch-move listener that stops page scrolling mid-drag.

    acquire() on mount, release() on unmount (or use as a context manager).
    """

    EVENT = "touchmove"

    def __init__(self, surface: Surface, normalizer: GestureNormalizer):
        self.surface = surface
        self.normalizer = normalizer
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def _on_touch_move(self, event: InputEvent) -> None:
        if self.normalizer.is_dragging:
            event.prevent_default()

    def acquire(self) -> None:
        if self._active:
            return
        self.surface.add_listener(self.EVENT, self._on_touch_move)
        self._active = True

    def release(self) -> None:
        if not self._active:
            return
        self.surface.remove_listener(self.EVENT, self._on_touch_move)
        self._active = False

    def __enter__(self) -> "ScrollGuard":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
