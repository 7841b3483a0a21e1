"""SQLite session storage: key/value data that lives as long as one app session."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from caja_pos.config import DB_PATH
from caja_pos.logs import get_logger

logger = get_logger(__name__)

ACTIVE_LOCATION_KEY = "active_location_id"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStorage:
    """Rows are scoped to `session_id`; bootstrapping drops rows of earlier sessions."""

    def __init__(self, db_path: str = DB_PATH, session_id: str | None = None) -> None:
        self.db_path = db_path
        self.session_id = session_id or uuid4().hex

    def _connect(self) -> sqlite3.Connection:
        db_file = Path(self.db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(db_file)

    def bootstrap_schema(self) -> None:
        """Create the storage table if needed and forget everything from previous sessions."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS session_storage (
                    session_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (session_id, key)
                );
                """
            )
            cur = conn.execute("DELETE FROM session_storage WHERE session_id != ?", (self.session_id,))
            if cur.rowcount:
                logger.debug("session_storage_purged", rows=cur.rowcount)

    def get_item(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM session_storage WHERE session_id = ? AND key = ?",
                (self.session_id, key),
            ).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._connect() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO session_storage (session_id, key, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(session_id, key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (self.session_id, key, value, _utc_now_iso()),
                )

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            with conn:
                conn.execute("DELETE FROM session_storage WHERE session_id = ? AND key = ?", (self.session_id, key))

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))

    def active_location(self) -> str:
        return self.get_item(ACTIVE_LOCATION_KEY) or ""

    def set_active_location(self, location_id: str) -> None:
        if location_id:
            self.set_item(ACTIVE_LOCATION_KEY, location_id)
        else:
            self.remove_item(ACTIVE_LOCATION_KEY)
