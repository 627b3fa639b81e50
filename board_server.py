#!/usr/bin/env python3
"""
colboard Snapshot Server
------------------------
Remote snapshot store for the board editor: one board per identity,
whole-document replace on every write, backed by SQLite.

Usage:
    export COLBOARD_API_SECRET=...
    python board_server.py --port 3000 --db ~/.local/share/colboard/boards.db

API (every /api/boards call needs an X-API-Key header):
    GET /api/health              → { status, db }
    GET /api/boards/<identity>   → { board_data, updated_at }  or 404
    PUT /api/boards/<identity>   ← { board_data, updated_at? }
                                 → { ok, updated_at }

Dependencies: flask
    pip install flask
"""

import hmac
import logging
import os
import sys
from functools import wraps
from pathlib import Path

from flask import Flask, current_app, jsonify, request

from colboard.remote import SnapshotStoreError, SqliteSnapshotStore, utc_now
from colboard.transfer import validate_columns

logger = logging.getLogger(__name__)

DEFAULT_DB = Path.home() / ".local" / "share" / "colboard" / "boards.db"


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config.get("API_SECRET", "")
        if not secret:
            return jsonify({"error": "API_SECRET not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── App ──────────────────────────────────────────────────────────────────────

def get_db_path() -> Path:
    env = os.environ.get("COLBOARD_DB")
    return Path(env).expanduser() if env else DEFAULT_DB


def create_app(db_path=None, api_secret=None) -> Flask:
    """Build the Flask app around a SqliteSnapshotStore."""
    app = Flask(__name__)
    app.config["DB_PATH"] = str(db_path or get_db_path())
    app.config["API_SECRET"] = (
        api_secret if api_secret is not None
        else os.environ.get("COLBOARD_API_SECRET", "")
    )
    store = SqliteSnapshotStore(app.config["DB_PATH"])

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "db": app.config["DB_PATH"]})

    @app.route("/api/boards/<path:identity>", methods=["GET"])
    @require_api_key
    def get_board(identity):
        try:
            row = store.get_row(identity)
        except SnapshotStoreError as e:
            app.logger.error(f"get_board error: {e}")
            return jsonify({"error": "storage failure"}), 500
        if row is None:
            return jsonify({"error": "not found"}), 404
        return jsonify(row)

    @app.route("/api/boards/<path:identity>", methods=["PUT"])
    @require_api_key
    def put_board(identity):
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or "board_data" not in body:
            return jsonify({"error": "body must be an object with board_data"}), 400
        result = validate_columns(body["board_data"], path="board_data")
        if not result.ok:
            return jsonify({"error": "invalid board", "details": result.errors}), 400
        updated_at = body.get("updated_at")
        if not isinstance(updated_at, str) or not updated_at:
            updated_at = utc_now()
        if not store.upsert(identity, body["board_data"], updated_at):
            return jsonify({"error": "storage failure"}), 500
        return jsonify({"ok": True, "updated_at": updated_at})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main():
    import argparse

    parser = argparse.ArgumentParser(description="colboard Snapshot Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to boards.db (overrides COLBOARD_DB env var)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app = create_app(db_path=args.db)
    if not app.config["API_SECRET"]:
        logger.warning("COLBOARD_API_SECRET is not set; board endpoints will answer 503")

    print(f"""
╔═══════════════════════════════════════╗
║  colboard Snapshot Server             ║
╠═══════════════════════════════════════╣
║  URL:  http://{args.host}:{args.port:<20}║
║  DB:   {app.config['DB_PATH']:<31}║
╚═══════════════════════════════════════╝
""")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
