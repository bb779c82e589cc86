"""SQLite storage backend for diff states."""

from __future__ import annotations

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

from lingopipe.errors import StorageError
from lingopipe.storage.base import Storage

DEFAULT_DB = Path(".lingopipe") / "states.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS states (
    key TEXT NOT NULL PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteStorage(Storage):
    """Persistent SQLite key/value store. Values are stored as JSON text."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        if db_path is None:
            db_path = DEFAULT_DB
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # One connection shared across threads; every access goes through the lock.
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value, expires_at FROM states WHERE key = ?", (key,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at is not None and expires_at < time.time():
                self._conn.execute("DELETE FROM states WHERE key = ?", (key,))
                self._conn.commit()
                return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt state '{key}' in {self._db_path}: {e}") from e

    def put(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return False
        expires_at = time.time() + ttl if ttl is not None else None
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO states (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, encoded, expires_at),
                )
                self._conn.commit()
            except sqlite3.Error:
                return False
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._conn.execute("DELETE FROM states WHERE key = ?", (key,))
            self._conn.commit()
        return True

    def clear(self) -> bool:
        with self._lock:
            self._conn.execute("DELETE FROM states")
            self._conn.commit()
        return True

    def count(self) -> int:
        """Return the number of stored states (including expired, not yet purged)."""
        with self._lock:
            cursor = self._conn.execute("SELECT COUNT(*) FROM states")
            return cursor.fetchone()[0]  # type: ignore[no-any-return]

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT key FROM states WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                (prefix.replace("%", r"\%").replace("_", r"\_") + "%",),
            )
            return [row[0] for row in cursor.fetchall()]

    def close(self) -> None:
        self._conn.close()
