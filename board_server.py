#!/usr/bin/env python3
"""
Attendance Board Server
-----------------------
JSON API backed by the SQLite attendance store. The board's HttpBackend talks
to this server.

Usage:
    python board_server.py --port 3000 --db ./attendance.db

API:
    GET  /api/records                 → { records, count }
    GET  /api/lanes                   → { lanes: [{ status, count, records }] }
    POST /api/records                 → create; body { id?, name, status?, ... }
    POST /api/records/<id>/status     → body { status, reason }
    GET  /api/records/<id>/history    → { history }
    DELETE /api/records/<id>          → remove a record and its history
    GET  /health

Write endpoints require an X-API-Key header matching ATTENDANCE_API_KEY.
"""

import hmac
import logging
import os
import uuid
from functools import wraps

from flask import Flask, jsonify, request

from attendance_kanban.config import BoardConfig, configure_logging
from attendance_kanban.schema import LANE_ORDER, AttendanceStatus, Record, UpdateError
from attendance_kanban.store import AttendanceStore

logger = logging.getLogger(__name__)


def create_app(store: AttendanceStore, api_secret: str = "") -> Flask:
    app = Flask(__name__)
    app.config["STORE"] = store
    app.config["API_SECRET"] = api_secret

    # ── Auth ─────────────────────────────────────────────────────────────────

    def require_api_key(f):
        """Decorator: reject requests without a valid X-API-Key header."""
        @wraps(f)
        def decorated(*args, **kwargs):
            secret = app.config["API_SECRET"]
            if not secret:
                return jsonify({"error": "API key not configured"}), 503
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, secret):
                code = 401 if not provided else 403
                return jsonify({"error": "Unauthorized"}), code
            return f(*args, **kwargs)
        return decorated

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/api/records", methods=["GET"])
    def api_records():
        status = request.args.get("status")
        if status:
            try:
                records = store.list_by_status(AttendanceStatus.from_str(status))
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
        else:
            records = store.list_all()
        return jsonify({"records": [r.to_dict() for r in records], "count": len(records)})

    @app.route("/api/lanes")
    def api_lanes():
        records = store.list_all()
        lanes = []
        for status in LANE_ORDER:
            lane = [r.to_dict() for r in records if r.status == status]
            lanes.append({"status": status.value, "count": len(lane), "records": lane})
        return jsonify({"lanes": lanes, "total": len(records)})

    @app.route("/api/records", methods=["POST"])
    @require_api_key
    def api_create_record():
        data = request.get_json(force=True, silent=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "name is required"}), 400
        data.setdefault("status", AttendanceStatus.UNEXCUSED.value)
        data["id"] = str(data.get("id") or uuid.uuid4().hex[:12])
        try:
            record = Record.from_dict(data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        if not store.save(record):
            return jsonify({"error": "Could not save record"}), 500
        return jsonify({"record": record.to_dict(), "id": record.record_id}), 201

    @app.route("/api/records/<record_id>/status", methods=["POST"])
    @require_api_key
    def api_update_status(record_id):
        data = request.get_json(force=True, silent=True) or {}
        try:
            new_status = AttendanceStatus.from_str(data.get("status", ""))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        if store.get(record_id) is None:
            return jsonify({"error": "Record not found"}), 404
        try:
            record = store.update_status(
                record_id,
                new_status,
                data.get("reason", ""),
                changed_by=data.get("changed_by", "api"),
            )
        except UpdateError as e:
            logger.info("Rejected status change for %s: %s", record_id, e.message)
            return jsonify({"error": e.message}), 400
        return jsonify({"record": record.to_dict()})

    @app.route("/api/records/<record_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_record(record_id):
        if store.get(record_id) is None:
            return jsonify({"error": "Record not found"}), 404
        if not store.delete(record_id):
            return jsonify({"error": "Could not delete record"}), 500
        return jsonify({"deleted": record_id})

    @app.route("/api/records/<record_id>/history")
    def api_history(record_id):
        if store.get(record_id) is None:
            return jsonify({"error": "Record not found"}), 404
        return jsonify({"history": store.history(record_id)})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": store.db_path, "stats": store.get_stats()})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Attendance Board Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to attendance.db (overrides ATTENDANCE_DB)")
    parser.add_argument("--config", help="Path to board.yaml")
    args = parser.parse_args()

    if args.db:
        os.environ["ATTENDANCE_DB"] = args.db

    config = BoardConfig.load(args.config)
    configure_logging(config.log_level)
    store = AttendanceStore(config.db_path, policy=config.reason_policy())

    print(f"""
╔═══════════════════════════════════════╗
║  Attendance Board Server              ║
╠═══════════════════════════════════════╣
║  URL:  http://{args.host}:{args.port:<20}║
║  DB:   {config.db_path:<31}║
╚═══════════════════════════════════════╝
""")

    create_app(store, api_secret=config.api_key).run(
        host=args.host, port=args.port, debug=False, threaded=True
    )
