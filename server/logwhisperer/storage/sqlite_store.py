import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from logwhisperer.schemas.models import CommandSuggestion, SessionState

log = logging.getLogger("store")

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    ts INTEGER NOT NULL,
    kind TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_session ON events (session_id, ts);
CREATE TABLE IF NOT EXISTS suggestions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    ts INTEGER NOT NULL,
    cmd TEXT NOT NULL,
    why TEXT NOT NULL,
    risk TEXT NOT NULL,
    accepted INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_suggestions_session ON suggestions (session_id, ts);
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    state TEXT NOT NULL
);
"""


def now_ms() -> int:
    return int(time.time() * 1000)


class SqliteStore:
    """
    Append-only event/suggestion log plus one JSON row of state per session.
    Safe to call from worker threads; writes are serialized on one connection.
    """

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ---- append-only log ----------------------------------------------------

    def append_event(self, session_id: str, kind: str, payload: Dict[str, Any]) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO events (session_id, ts, kind, payload) VALUES (?, ?, ?, ?)",
                (session_id, now_ms(), kind, json.dumps(payload)),
            )

    def append_suggestion(self, session_id: str, suggestion: CommandSuggestion) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO suggestions (session_id, ts, cmd, why, risk, accepted) VALUES (?, ?, ?, ?, ?, 0)",
                (session_id, now_ms(), suggestion.cmd, suggestion.why, suggestion.risk),
            )

    def query_recent_events(self, session_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, ts, kind, payload FROM events WHERE session_id = ? ORDER BY ts DESC, id DESC LIMIT ?",
                (session_id, limit),
            ).fetchall()
        return [{**dict(r), "payload": json.loads(r["payload"])} for r in rows]

    def query_recent_suggestions(self, session_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, ts, cmd, why, risk, accepted FROM suggestions WHERE session_id = ? "
                "ORDER BY ts DESC, id DESC LIMIT ?",
                (session_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    # ---- session state ------------------------------------------------------

    def load_session(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            row = self._conn.execute(
                "SELECT state FROM sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        if row is None:
            return None
        return SessionState.model_validate_json(row["state"])

    def save_session(self, state: SessionState) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO sessions (session_id, state) VALUES (?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET state = excluded.state",
                (state.session_id, state.model_dump_json()),
            )
