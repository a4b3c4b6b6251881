"""
Attendance board schema: records, lanes, and the transient drag/modal state.

Lane lifecycle of a record:
  Unexcused ⇄ Present ⇄ Excused   (any lane to any other lane)

Moving into a lane may require a reason (Excused by default). Records are
never patched locally; the collection is replaced after every fetch.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Iterable, Tuple


class AttendanceStatus(Enum):
    """The three lanes of the board."""
    UNEXCUSED = "Unexcused"
    PRESENT = "Present"
    EXCUSED = "Excused"

    @classmethod
    def from_str(cls, value: str) -> "AttendanceStatus":
        """Accept a lane value or member name, case-insensitively."""
        if isinstance(value, cls):
            return value
        text = (value or "").strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Invalid attendance status: {value!r}")


# Display order of the lanes, left to right
LANE_ORDER: Tuple[AttendanceStatus, ...] = (
    AttendanceStatus.UNEXCUSED,
    AttendanceStatus.PRESENT,
    AttendanceStatus.EXCUSED,
)


class Severity(Enum):
    """Notification severity (toast variant)."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Modality(Enum):
    """Input protocol that started a drag session."""
    POINTER = "pointer"
    TOUCH = "touch"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Exceptions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardError(Exception):
    """Base class for attendance board errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class FetchError(BoardError):
    """Raised when loading or refreshing the record collection fails."""
    pass


class UpdateError(BoardError):
    """Raised when the backend rejects a status change."""
    pass


class ValidationError(BoardError):
    """Raised when a gated transition is submitted without a reason."""
    pass


class ConfigError(BoardError):
    """Raised when configuration is invalid or incomplete."""
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class Record:
    """One person on the board."""

    record_id: str
    status: AttendanceStatus
    name: str = ""
    reason: str = ""                # last reason given for Excused
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.record_id,
            "name": self.name,
            "status": self.status.value,
            "reason": self.reason,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        """Deserialize from the wire format. Raises ValueError on a bad status."""
        record_id = data.get("id") or data.get("record_id")
        if record_id in (None, ""):
            raise ValueError("Record is missing an id")
        known = {"id", "record_id", "name", "status", "reason"}
        return cls(
            record_id=str(record_id),
            status=AttendanceStatus.from_str(data.get("status", "")),
            name=data.get("name") or "",
            reason=data.get("reason") or "",
            extra={k: v for k, v in data.items() if k not in known},
        )


RecordCollection = Tuple[Record, ...]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Transitions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class MoveIntent:
    """Modality-independent "move record X from lane A to lane B"."""

    record_id: str
    from_status: AttendanceStatus
    to_status: AttendanceStatus
    # Gesture that produced the intent; not part of its identity
    session: int = field(default=0, compare=False)

    def __post_init__(self):
        if self.from_status == self.to_status:
            raise ValueError(
                f"MoveIntent for {self.record_id} does not change lanes "
                f"({self.from_status.value})"
            )


class ReasonPolicy:
    """Table of status → requires-reason. By default only Excused needs one."""

    def __init__(self, table: Optional[Dict[AttendanceStatus, bool]] = None):
        if table is None:
            table = {AttendanceStatus.EXCUSED: True}
        self.table = dict(table)

    @classmethod
    def from_statuses(cls, statuses: Iterable[str]) -> "ReasonPolicy":
        """Build a policy from the names/values of the statuses that need a reason."""
        return cls({AttendanceStatus.from_str(s): True for s in statuses})

    def requires_reason(self, status: AttendanceStatus) -> bool:
        return self.table.get(status, False)


@dataclass(frozen=True)
class TransitionRequest:
    """An approved move, carried through exactly one commit cycle."""

    record_id: str
    from_status: AttendanceStatus
    to_status: AttendanceStatus
    reason: str = ""
    session: int = field(default=0, compare=False)

    @classmethod
    def from_intent(cls, intent: MoveIntent, reason: str = "") -> "TransitionRequest":
        return cls(
            record_id=intent.record_id,
            from_status=intent.from_status,
            to_status=intent.to_status,
            reason=reason,
            session=intent.session,
        )

    def validate(self, policy: ReasonPolicy) -> None:
        """Raise ValidationError if the target lane needs a reason and none is given."""
        if policy.requires_reason(self.to_status) and not self.reason.strip():
            raise ValidationError(
                f"Please provide a reason for marking as {self.to_status.value}"
            )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Transient UI state
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class DragSession:
    """One in-flight gesture. Owned by the gesture normalizer."""

    record_id: Optional[str] = None
    from_status: Optional[AttendanceStatus] = None
    modality: Optional[Modality] = None
    start_x: float = 0.0
    start_y: float = 0.0
    current_x: float = 0.0
    current_y: float = 0.0

    @property
    def active(self) -> bool:
        return self.record_id is not None


@dataclass
class ModalState:
    """Reason modal. Owned by the transition gate."""

    visible: bool = False
    reason_text: str = ""
    pending_record_id: Optional[str] = None
    pending_from_status: Optional[AttendanceStatus] = None
    pending_to_status: Optional[AttendanceStatus] = None
    pending_session: int = 0

    @property
    def is_reason_empty(self) -> bool:
        return not self.reason_text or not self.reason_text.strip()

    def reset(self) -> None:
        self.visible = False
        self.reason_text = ""
        self.pending_record_id = None
        self.pending_from_status = None
        self.pending_to_status = None
        self.pending_session = 0


@dataclass(frozen=True)
class Notification:
    """A user-visible outcome (toast)."""

    title: str
    message: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "message": self.message, "variant": self.severity.value}
