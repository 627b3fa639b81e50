"""
Remote snapshot stores.

A remote store keeps exactly one board per identity and replaces it
wholesale on every upsert (last write wins). Three backends share the
same two calls:

    get(identity)                       -> list | None
    upsert(identity, columns, updated_at) -> bool

get() returns None when the identity has no record yet and raises
SnapshotStoreError for any other failure, so callers can tell "new user"
apart from "backend down". upsert() logs failures and returns False.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

BoardData = List[Dict[str, Any]]

DEFAULT_TIMEOUT = 10  # seconds


class SnapshotStoreError(Exception):
    """Raised when a snapshot could not be read for a reason other than 'not found'."""
    pass


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


class SnapshotStore:
    """Interface shared by all backends."""

    def get(self, identity: str) -> Optional[BoardData]:
        raise NotImplementedError

    def upsert(self, identity: str, columns: BoardData, updated_at: Optional[str] = None) -> bool:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    """Dict-backed store (offline sessions, tests)."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}

    def get(self, identity: str) -> Optional[BoardData]:
        row = self.rows.get(identity)
        if row is None:
            return None
        return json.loads(row["board_data"])

    def upsert(self, identity: str, columns: BoardData, updated_at: Optional[str] = None) -> bool:
        self.rows[identity] = {
            "board_data": json.dumps(columns),
            "updated_at": updated_at or utc_now(),
        }
        return True


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteSnapshotStore(SnapshotStore):
    """SQLite-backed store: one row per identity in user_boards."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create the table if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "colboard" / "boards.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_boards (
                    user_id TEXT PRIMARY KEY,
                    board_data TEXT NOT NULL,  -- JSON list of columns
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self, identity: str) -> Optional[BoardData]:
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT board_data FROM user_boards WHERE user_id = ?",
                    (identity,),
                ).fetchone()
        except sqlite3.Error as e:
            raise SnapshotStoreError(f"Error loading board for {identity}: {e}") from e
        if row is None:
            return None
        try:
            return json.loads(row["board_data"])
        except (json.JSONDecodeError, TypeError) as e:
            raise SnapshotStoreError(f"Corrupt board data for {identity}: {e}") from e

    def get_row(self, identity: str) -> Optional[Dict[str, Any]]:
        """Board plus its updated_at stamp, for the HTTP server."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT board_data, updated_at FROM user_boards WHERE user_id = ?",
                    (identity,),
                ).fetchone()
        except sqlite3.Error as e:
            raise SnapshotStoreError(f"Error loading board for {identity}: {e}") from e
        if row is None:
            return None
        try:
            board_data = json.loads(row["board_data"])
        except (json.JSONDecodeError, TypeError) as e:
            raise SnapshotStoreError(f"Corrupt board data for {identity}: {e}") from e
        return {"board_data": board_data, "updated_at": row["updated_at"]}

    def upsert(self, identity: str, columns: BoardData, updated_at: Optional[str] = None) -> bool:
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO user_boards (user_id, board_data, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        board_data = excluded.board_data,
                        updated_at = excluded.updated_at
                """, (identity, json.dumps(columns), updated_at or utc_now()))
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Error saving board for {identity}: {e}")
            return False


class HttpSnapshotStore(SnapshotStore):
    """Client for the snapshot server (board_server.py)."""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["X-API-Key"] = api_key

    def _url(self, identity: str) -> str:
        return f"{self.base_url}/api/boards/{quote(identity, safe='')}"

    def get(self, identity: str) -> Optional[BoardData]:
        try:
            r = self.session.get(self._url(identity), timeout=self.timeout)
        except requests.RequestException as e:
            raise SnapshotStoreError(f"Error loading board for {identity}: {e}") from e
        if r.status_code == 404:
            return None
        if not r.ok:
            raise SnapshotStoreError(
                f"Error loading board for {identity}: HTTP {r.status_code}"
            )
        try:
            return r.json()["board_data"]
        except (ValueError, KeyError, TypeError) as e:
            raise SnapshotStoreError(f"Malformed response for {identity}: {e}") from e

    def upsert(self, identity: str, columns: BoardData, updated_at: Optional[str] = None) -> bool:
        payload = {"board_data": columns, "updated_at": updated_at or utc_now()}
        try:
            r = self.session.put(self._url(identity), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error saving board for {identity}: {e}")
            return False
        if not r.ok:
            logger.error(f"Error saving board for {identity}: HTTP {r.status_code}")
            return False
        return True


def make_snapshot_store(cfg) -> SnapshotStore:
    """Build the backend selected by a Config."""
    if cfg.backend == "memory":
        return MemorySnapshotStore()
    if cfg.backend == "http":
        return HttpSnapshotStore(cfg.server_url, api_key=cfg.api_key, timeout=cfg.request_timeout)
    return SqliteSnapshotStore(cfg.db_path)
