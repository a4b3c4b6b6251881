"""
End-to-end board tests: pointer and touch moves through gate and committer,
bindings, lifecycle, and manual refresh.
"""
import asyncio

import pytest

from attendance_kanban.backend import InMemoryBackend
from attendance_kanban.board import AttendanceBoard
from attendance_kanban.config import BoardConfig
from attendance_kanban.gestures import (
    DRAGGING,
    DragEvent,
    InputEvent,
    ScrollGuard,
    TouchEvent,
    TouchPoint,
)
from attendance_kanban.schema import MoveIntent, Record, Severity

from conftest import EXCUSED, LANE_POINTS, LANE_RECTS, PRESENT, UNEXCUSED


def pointer_move(board, record_id, from_status, to_status):
    """Full pointer gesture: start, enter, drop, end."""
    start = DragEvent()
    board.on_drag_start(start, record_id, from_status)
    board.on_drag_enter(DragEvent(), to_status)
    board.on_drag_over(DragEvent())
    intent = asyncio.run(board.on_drop(DragEvent(start.data_transfer), to_status))
    board.on_drag_end(start, record_id)
    return intent


def touch_move(board, record_id, from_status, to_status):
    board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[from_status])]), record_id, from_status)
    board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[to_status])]))
    return asyncio.run(board.on_touch_end(TouchEvent([], [TouchPoint(*LANE_POINTS[to_status])])))


def assert_settled(board):
    assert not board.is_loading
    assert not board.gestures.session.active
    assert not board.gestures.is_dragging
    assert not any(c.markers for c in board.surface.cards.values())
    assert not any(lane.markers for lane in board.surface.lanes.values())


@pytest.fixture
def single():
    backend = InMemoryBackend([Record("1", PRESENT, name="Anna")])
    board = AttendanceBoard(backend)
    board.layout(LANE_RECTS)
    asyncio.run(board.mount())
    return board, backend


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scenarios
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_scenario_a_immediate_move(single):
    board, backend = single

    intent = pointer_move(board, "1", PRESENT, UNEXCUSED)

    assert intent == MoveIntent("1", PRESENT, UNEXCUSED)
    assert backend.updates == [("1", UNEXCUSED, "")]
    assert backend.fetch_count == 2  # mount + refresh
    assert [r.record_id for r in board.lane(UNEXCUSED)] == ["1"]
    assert board.notifier.history[-1].severity == Severity.SUCCESS
    assert board.notifier.history[-1].message == "Status updated to Unexcused"
    assert_settled(board)


def test_scenario_b_blank_reason_rejected(single):
    board, backend = single

    pointer_move(board, "1", PRESENT, EXCUSED)
    assert board.modal.visible
    assert backend.updates == []

    board.on_reason_change("")
    assert asyncio.run(board.confirm()) is False

    assert backend.updates == []
    assert board.modal.visible
    assert board.notifier.history[-1].severity == Severity.ERROR


def test_scenario_c_reason_commits(single):
    board, backend = single

    pointer_move(board, "1", PRESENT, EXCUSED)
    board.on_reason_change("sick")
    assert asyncio.run(board.confirm()) is True

    assert backend.updates == [("1", EXCUSED, "sick")]
    assert not board.modal.visible
    assert board.lane(EXCUSED)[0].reason == "sick"
    assert_settled(board)


def test_scenario_d_touch_equals_pointer(board, backend):
    asyncio.run(board.mount())

    board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[UNEXCUSED])]), "2", UNEXCUSED)
    board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[PRESENT])]))
    assert board.surface.marked_lanes("touch-drag-over") == [PRESENT]
    intent = asyncio.run(board.on_touch_end(TouchEvent([], [TouchPoint(*LANE_POINTS[PRESENT])])))

    assert intent == MoveIntent("2", UNEXCUSED, PRESENT)
    assert backend.updates == [("2", PRESENT, "")]
    assert_settled(board)

    # Same move by pointer on a fresh board produces the same intent
    other = AttendanceBoard(InMemoryBackend([Record("2", UNEXCUSED)]))
    asyncio.run(other.mount())
    assert pointer_move(other, "2", UNEXCUSED, PRESENT) == intent


def test_scenario_e_refresh_fails_after_update(single):
    board, backend = single
    before = board.records
    backend.fail_fetch = "refresh failed"
    notified = len(board.notifier.history)

    pointer_move(board, "1", PRESENT, UNEXCUSED)

    assert backend.updates == [("1", UNEXCUSED, "")]
    assert board.records is before
    assert [r.record_id for r in board.lane(PRESENT)] == ["1"]
    new = board.notifier.history[notified:]
    assert len(new) == 1
    assert new[0].severity == Severity.ERROR
    assert_settled(board)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Properties
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_drop_on_own_lane_calls_nothing(board, backend):
    asyncio.run(board.mount())
    assert pointer_move(board, "1", PRESENT, PRESENT) is None
    assert touch_move(board, "2", UNEXCUSED, UNEXCUSED) is None
    assert backend.updates == []
    assert backend.fetch_count == 1


def test_touch_into_excused_waits_for_modal(board, backend):
    asyncio.run(board.mount())
    intent = touch_move(board, "2", UNEXCUSED, EXCUSED)

    assert intent == MoveIntent("2", UNEXCUSED, EXCUSED)
    assert board.modal.visible
    assert backend.updates == []


def test_update_failure_settles_board(single):
    board, backend = single
    backend.fail_update = "read only"

    pointer_move(board, "1", PRESENT, UNEXCUSED)

    assert board.notifier.history[-1].message == "Failed to update status: read only"
    assert board.lane(PRESENT)[0].record_id == "1"
    assert_settled(board)


def test_cancel_mid_touch_clears_markers(board, backend):
    asyncio.run(board.mount())
    touch_move(board, "2", UNEXCUSED, EXCUSED)
    # A new touch starts while the modal is open, then the user cancels
    board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[PRESENT])]), "1", PRESENT)
    board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[EXCUSED])]))

    board.cancel()

    assert not board.modal.visible
    assert backend.updates == []
    assert_settled(board)


def test_stale_payload_is_revalidated(single):
    """Record changed lanes between drag start and drop"""
    board, backend = single
    start = DragEvent()
    board.on_drag_start(start, "1", PRESENT)

    backend.records["1"] = Record("1", UNEXCUSED, name="Anna")
    asyncio.run(board.refresh_data())

    assert asyncio.run(board.on_drop(DragEvent(start.data_transfer), UNEXCUSED)) is None
    assert backend.updates == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Bindings and lifecycle
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_counts_and_empty_states(single):
    board, _ = single
    assert board.count(PRESENT) == 1
    assert board.count(EXCUSED) == 0
    assert board.show_empty(EXCUSED)
    assert not board.show_empty(PRESENT)


def test_snapshot(single):
    board, _ = single
    pointer_move(board, "1", PRESENT, EXCUSED)
    board.on_reason_change("train late")

    snap = board.snapshot()
    assert snap["loading"] is False
    assert [lane["status"] for lane in snap["lanes"]] == ["Unexcused", "Present", "Excused"]
    assert snap["lanes"][1]["count"] == 1
    assert snap["lanes"][1]["records"][0]["id"] == "1"
    assert snap["modal"] == {
        "visible": True,
        "reason": "train late",
        "record_id": "1",
        "target": "Excused",
    }
    assert not board.is_reason_empty


def test_mount_and_unmount_manage_scroll_guard(board):
    asyncio.run(board.mount())
    assert board.scroll_guard.active

    board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[UNEXCUSED])]), "2", UNEXCUSED)
    board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[PRESENT])]))
    page_scroll = InputEvent()
    board.surface.dispatch(ScrollGuard.EVENT, page_scroll)
    assert page_scroll.default_prevented

    board.unmount()
    assert not board.scroll_guard.active
    assert_settled(board)


def test_async_context_manager(backend):
    async def scenario():
        async with AttendanceBoard(backend) as board:
            assert board.scroll_guard.active
            assert board.count(PRESENT) == 1
        return board

    board = asyncio.run(scenario())
    assert not board.scroll_guard.active


def test_cards_follow_refresh(single):
    board, _ = single
    board.on_drag_start(DragEvent(), "1", PRESENT)
    assert DRAGGING in board.surface.cards["1"].markers
    assert board.surface.cards["1"].status == PRESENT


def test_refresh_data_never_raises(single):
    board, backend = single
    backend.fail_fetch = "offline"

    assert asyncio.run(board.refresh_data()) is False
    assert board.notifier.history[-1].message == "Failed to refresh data"
    assert not board.is_loading

    assert asyncio.run(board.refresh_data()) is True


def test_initial_load_failure_notifies(backend):
    backend.fail_fetch = "no connection"
    board = AttendanceBoard(backend)

    assert asyncio.run(board.mount()) is False
    assert board.records == ()
    assert board.notifier.history[-1].message == "Failed to load records: no connection"
    assert not board.is_loading


def test_from_config():
    config = BoardConfig(backend="memory", reason_required=["Present"], ghost_width=50, ghost_height=50)
    board = AttendanceBoard.from_config(config)
    assert isinstance(board.store.backend, InMemoryBackend)
    assert board.gate.policy.requires_reason(PRESENT)
    assert not board.gate.policy.requires_reason(EXCUSED)
    assert board.gestures.ghost_width == 50


def test_touch_started_during_pending_commit_survives(board, backend):
    """A commit finishing mid-gesture only cleans up its own gesture"""
    update = backend.update_status

    async def scenario():
        release = asyncio.Event()

        async def held_update(*args):
            await release.wait()
            await update(*args)

        backend.update_status = held_update
        await board.mount()

        board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[PRESENT])]), "1", PRESENT)
        board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[UNEXCUSED])]))
        pending = asyncio.ensure_future(
            board.on_touch_end(TouchEvent([], [TouchPoint(*LANE_POINTS[UNEXCUSED])]))
        )
        await asyncio.sleep(0)
        assert board.is_loading

        board.on_touch_start(TouchEvent([TouchPoint(*LANE_POINTS[UNEXCUSED])]), "2", UNEXCUSED)
        release.set()
        first = await pending

        assert first == MoveIntent("1", PRESENT, UNEXCUSED)
        assert board.gestures.session.record_id == "2"
        assert board.surface.marked_cards("touch-dragging") == ["2"]

        board.on_touch_move(TouchEvent([TouchPoint(*LANE_POINTS[PRESENT])]))
        return await board.on_touch_end(TouchEvent([], [TouchPoint(*LANE_POINTS[PRESENT])]))

    second = asyncio.run(scenario())

    assert second == MoveIntent("2", UNEXCUSED, PRESENT)
    assert backend.updates == [("1", UNEXCUSED, ""), ("2", PRESENT, "")]
    assert_settled(board)
