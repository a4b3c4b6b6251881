"""
Attendance record storage backend (SQLite).

Provides CRUD operations, status changes with an append-only history, and
per-lane statistics. This is the persistence behind the board server; the
board itself only ever talks to it through a RecordBackend.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .schema import AttendanceStatus, ReasonPolicy, Record, UpdateError

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AttendanceStore:
    """SQLite-backed store for attendance records."""

    def __init__(self, db_path: Optional[str] = None, policy: Optional[ReasonPolicy] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "attendance-kanban" / "attendance.db")
        self.db_path = db_path
        self.policy = policy or ReasonPolicy()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS attendance_records (
                    record_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'Unexcused',
                    reason TEXT DEFAULT '',
                    extra TEXT,  -- JSON object of opaque fields
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS status_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_id TEXT NOT NULL,
                    from_status TEXT NOT NULL,
                    to_status TEXT NOT NULL,
                    reason TEXT,
                    changed_by TEXT,
                    timestamp TEXT NOT NULL,
                    FOREIGN KEY (record_id) REFERENCES attendance_records(record_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_status ON attendance_records(status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_history_record ON status_history(record_id, id)")
            conn.commit()

    def save(self, record: Record) -> bool:
        """Insert or replace a record. Keeps the original created_at."""
        now = _now()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO attendance_records
                    (record_id, name, status, reason, extra, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(record_id) DO UPDATE SET
                        name=excluded.name,
                        status=excluded.status,
                        reason=excluded.reason,
                        extra=excluded.extra,
                        updated_at=excluded.updated_at
                """, (
                    record.record_id,
                    record.name,
                    record.status.value,
                    record.reason,
                    json.dumps(record.extra),
                    now,
                    now,
                ))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error("Error saving record %s: %s", record.record_id, e)
            return False

    def get(self, record_id: str) -> Optional[Record]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM attendance_records WHERE record_id = ?",
                (record_id,)
            ).fetchone()
        return self._row_to_record(row) if row else None

    def list_all(self, limit: int = 1000) -> List[Record]:
        """All records, by name."""
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM attendance_records ORDER BY name, record_id LIMIT ?",
                (limit,)
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def list_by_status(self, status: AttendanceStatus, limit: int = 1000) -> List[Record]:
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM attendance_records WHERE status = ? ORDER BY name, record_id LIMIT ?",
                (status.value, limit)
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_status(
        self,
        record_id: str,
        new_status: AttendanceStatus,
        reason: str = "",
        changed_by: str = "board",
    ) -> Record:
        """
        Move a record to a new lane and append a history row.

        Raises UpdateError if the record does not exist or the target lane
        requires a reason and none was given.
        """
        reason = (reason or "").strip()
        if self.policy.requires_reason(new_status) and not reason:
            raise UpdateError(f"A reason is required for {new_status.value}")

        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT status FROM attendance_records WHERE record_id = ?",
                (record_id,)
            ).fetchone()
            if not row:
                raise UpdateError(f"Record {record_id} not found")

            now = _now()
            conn.execute(
                "UPDATE attendance_records SET status = ?, reason = ?, updated_at = ? WHERE record_id = ?",
                (new_status.value, reason, now, record_id)
            )
            conn.execute(
                "INSERT INTO status_history (record_id, from_status, to_status, reason, changed_by, timestamp) "
                "VALUES (?,?,?,?,?,?)",
                (record_id, row["status"], new_status.value, reason, changed_by, now)
            )
            conn.commit()

        logger.info("Record %s: %s → %s", record_id, row["status"], new_status.value)
        return self.get(record_id)

    def history(self, record_id: str) -> List[Dict[str, Any]]:
        """Status changes of a record, oldest first."""
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT from_status, to_status, reason, changed_by, timestamp "
                "FROM status_history WHERE record_id = ? ORDER BY id ASC",
                (record_id,)
            ).fetchall()
        return [dict(r) for r in rows]

    def get_stats(self) -> Dict[str, Any]:
        """Record counts per lane."""
        stats = {"by_status": {s.value: 0 for s in AttendanceStatus}, "total": 0}
        with _connect(self.db_path) as conn:
            for row in conn.execute("SELECT status, COUNT(*) FROM attendance_records GROUP BY status"):
                stats["by_status"][row[0]] = row[1]
                stats["total"] += row[1]
        return stats

    def delete(self, record_id: str) -> bool:
        """Delete a record and its status history."""
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM status_history WHERE record_id = ?", (record_id,))
                conn.execute("DELETE FROM attendance_records WHERE record_id = ?", (record_id,))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error("Error deleting record %s: %s", record_id, e)
            return False

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        data = dict(row)
        extra = {}
        if data.get("extra"):
            try:
                extra = json.loads(data["extra"])
            except (json.JSONDecodeError, TypeError):
                extra = {}
        return Record(
            record_id=data["record_id"],
            status=AttendanceStatus.from_str(data["status"]),
            name=data.get("name") or "",
            reason=data.get("reason") or "",
            extra=extra,
        )
