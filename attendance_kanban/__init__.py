# Attendance board: lanes by status, drag/touch moves, reason-gated transitions
#
# Components:
#   schema.py    - Data model (Record, AttendanceStatus, MoveIntent, ModalState, errors)
#   records.py   - Record store: in-memory collection, lanes, loading flag
#   gestures.py  - Pointer and touch adapters producing MoveIntents
#   gate.py      - Reason modal and gating of transitions
#   committer.py - Commits status changes, refreshes, notifies
#   board.py     - Facade the view binds to
#   backend.py   - Record backends (memory, SQLite, HTTP)
#   store.py     - SQLite persistence for the board server
#   notify.py    - Notification dispatch (logging, Telegram)
#   config.py    - YAML/env configuration
