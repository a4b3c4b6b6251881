#!/usr/bin/env python3
"""
Quick verification that the attendance board works end-to-end.
"""
import asyncio

from attendance_kanban.backend import InMemoryBackend
from attendance_kanban.board import AttendanceBoard
from attendance_kanban.gestures import DragEvent, Rect, TouchEvent, TouchPoint
from attendance_kanban.schema import AttendanceStatus, Record

LANE_RECTS = {
    AttendanceStatus.UNEXCUSED: Rect(0, 0, 300, 800),
    AttendanceStatus.PRESENT: Rect(300, 0, 600, 800),
    AttendanceStatus.EXCUSED: Rect(600, 0, 900, 800),
}


async def main():
    print("=" * 60)
    print("Attendance Board Verification")
    print("=" * 60)

    print("\n[1/7] Loading records...")
    backend = InMemoryBackend([
        Record("1", AttendanceStatus.PRESENT, name="Anna"),
        Record("2", AttendanceStatus.UNEXCUSED, name="Ben"),
    ])
    board = AttendanceBoard(backend)
    board.layout(LANE_RECTS)
    await board.mount()
    for status in AttendanceStatus:
        print(f"   {status.value:<10} {board.count(status)}")

    print("\n[2/7] Pointer drag 1: Present → Unexcused...")
    event = DragEvent()
    board.on_drag_start(event, "1", AttendanceStatus.PRESENT)
    await board.on_drop(DragEvent(event.data_transfer), AttendanceStatus.UNEXCUSED)
    board.on_drag_end(event, "1")
    print(f"✅ Backend calls: {backend.updates}")

    print("\n[3/7] Pointer drag 1: Unexcused → Excused (gated)...")
    event = DragEvent()
    board.on_drag_start(event, "1", AttendanceStatus.UNEXCUSED)
    await board.on_drop(DragEvent(event.data_transfer), AttendanceStatus.EXCUSED)
    board.on_drag_end(event, "1")
    print(f"   Modal visible: {board.modal.visible}")

    print("\n[4/7] Confirm without a reason...")
    ok = await board.confirm()
    print(f"   Committed: {ok}, modal still visible: {board.modal.visible}")

    print("\n[5/7] Confirm with reason 'sick'...")
    board.on_reason_change("sick")
    ok = await board.confirm()
    print(f"✅ Committed: {ok}, status now {board.store.status_of('1').value}")

    print("\n[6/7] Touch drag 2: Unexcused → Present...")
    board.on_touch_start(TouchEvent([TouchPoint(100, 100)]), "2", AttendanceStatus.UNEXCUSED)
    board.on_touch_move(TouchEvent([TouchPoint(450, 200)]))
    print(f"   Ghost: {board.ghost_style}")
    await board.on_touch_end(TouchEvent([], [TouchPoint(450, 200)]))
    print(f"✅ Status now {board.store.status_of('2').value}")

    print("\n[7/7] Backend refresh fails after an update...")
    backend.fail_fetch = "simulated outage"
    event = DragEvent()
    board.on_drag_start(event, "2", AttendanceStatus.PRESENT)
    await board.on_drop(DragEvent(event.data_transfer), AttendanceStatus.UNEXCUSED)
    board.on_drag_end(event, "2")
    print(f"✅ Stale board kept: 2 still shown as {board.store.status_of('2').value}, loading={board.is_loading}")

    board.unmount()

    print("\nNotifications:")
    for n in board.notifier.history:
        print(f"   [{n.severity.value}] {n.title}: {n.message}")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
