"""
Tests for the SQLite attendance store and the SqliteBackend wrapper.
"""
import asyncio
import tempfile
from pathlib import Path

import pytest

from attendance_kanban.backend import SqliteBackend
from attendance_kanban.schema import FetchError, ReasonPolicy, Record, UpdateError
from attendance_kanban.store import AttendanceStore

from conftest import EXCUSED, PRESENT, UNEXCUSED


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        path = tmp.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        Path(path + suffix).unlink(missing_ok=True)


@pytest.fixture
def store(db_path, records):
    store = AttendanceStore(db_path)
    for record in records:
        assert store.save(record)
    return store


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_save_and_get(store):
    """Test record persistence with opaque fields"""
    store.save(Record("7", PRESENT, name="Gus", extra={"course": "Math 101"}))

    loaded = store.get("7")
    assert loaded.name == "Gus"
    assert loaded.status == PRESENT
    assert loaded.extra == {"course": "Math 101"}
    assert store.get("nope") is None


def test_save_upserts(store):
    store.save(Record("1", PRESENT, name="Anna Lee"))
    assert store.get("1").name == "Anna Lee"
    assert len(store.list_all()) == 3


def test_list_by_status(store):
    assert [r.record_id for r in store.list_by_status(EXCUSED)] == ["3"]
    assert [r.name for r in store.list_all()] == ["Anna", "Ben", "Cleo"]


def test_update_status_appends_history(store):
    """Test status change and audit trail"""
    record = store.update_status("2", EXCUSED, "  dentist  ", changed_by="office")

    assert record.status == EXCUSED
    assert record.reason == "dentist"
    history = store.history("2")
    assert len(history) == 1
    assert history[0]["from_status"] == "Unexcused"
    assert history[0]["to_status"] == "Excused"
    assert history[0]["changed_by"] == "office"


def test_update_status_requires_reason(store):
    with pytest.raises(UpdateError) as exc:
        store.update_status("2", EXCUSED, "   ")
    assert exc.value.message == "A reason is required for Excused"
    assert store.get("2").status == UNEXCUSED
    assert store.history("2") == []


def test_update_status_custom_policy(db_path):
    store = AttendanceStore(db_path, policy=ReasonPolicy({UNEXCUSED: True}))
    store.save(Record("1", PRESENT, name="Anna"))

    store.update_status("1", EXCUSED)
    with pytest.raises(UpdateError):
        store.update_status("1", UNEXCUSED)


def test_update_unknown_record(store):
    with pytest.raises(UpdateError) as exc:
        store.update_status("404", PRESENT)
    assert exc.value.message == "Record 404 not found"


def test_stats_and_delete(store):
    stats = store.get_stats()
    assert stats["total"] == 3
    assert stats["by_status"] == {"Unexcused": 1, "Present": 1, "Excused": 1}

    store.update_status("1", UNEXCUSED)
    assert store.delete("1")
    assert store.get("1") is None
    assert store.history("1") == []
    assert store.get_stats()["by_status"]["Unexcused"] == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SqliteBackend Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_sqlite_backend_round_trip(store):
    backend = SqliteBackend(store, changed_by="board-test")

    asyncio.run(backend.update_status("1", EXCUSED, "sick"))
    records = {r.record_id: r for r in asyncio.run(backend.fetch_records())}

    assert records["1"].status == EXCUSED
    assert records["1"].reason == "sick"
    assert store.history("1")[0]["changed_by"] == "board-test"


def test_sqlite_backend_rejection_is_update_error(store):
    backend = SqliteBackend(store)
    with pytest.raises(UpdateError):
        asyncio.run(backend.update_status("1", EXCUSED, ""))


def test_sqlite_backend_bad_row_is_fetch_error(store):
    backend = SqliteBackend(store)
    store.list_all = lambda: Record.from_dict({"id": "x", "status": "Late"})

    with pytest.raises(FetchError):
        asyncio.run(backend.fetch_records())
