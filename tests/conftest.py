"""Shared test fixtures for the attendance board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from attendance_kanban.backend import InMemoryBackend
from attendance_kanban.board import AttendanceBoard
from attendance_kanban.gestures import Rect
from attendance_kanban.schema import AttendanceStatus, Record

UNEXCUSED = AttendanceStatus.UNEXCUSED
PRESENT = AttendanceStatus.PRESENT
EXCUSED = AttendanceStatus.EXCUSED

LANE_RECTS = {
    UNEXCUSED: Rect(0, 0, 299, 800),
    PRESENT: Rect(300, 0, 599, 800),
    EXCUSED: Rect(600, 0, 899, 800),
}

# A point well inside each lane
LANE_POINTS = {
    UNEXCUSED: (150, 400),
    PRESENT: (450, 400),
    EXCUSED: (750, 400),
}


@pytest.fixture
def records():
    return [
        Record("1", PRESENT, name="Anna"),
        Record("2", UNEXCUSED, name="Ben"),
        Record("3", EXCUSED, name="Cleo", reason="doctor"),
    ]


@pytest.fixture
def backend(records):
    return InMemoryBackend(records)


@pytest.fixture
def board(backend):
    board = AttendanceBoard(backend)
    board.layout(LANE_RECTS)
    return board
