"""SQLite-backed durable state for extensions, scoped per extension id."""
from __future__ import annotations

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any


class ExtensionStateStore:
    """Key/value store holding JSON values per (extension id, key)."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = ":memory:"
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db_path = str(db_path)
        # One connection; an in-memory database only lives as long as it does.
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database tables."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS extension_state (
                    extension_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT,
                    updated_at REAL,
                    PRIMARY KEY (extension_id, key)
                )
            """)
            self._conn.commit()

    def get_state(self, extension_id: str, key: str) -> Any | None:
        """Return the stored value, or None when absent."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM extension_state WHERE extension_id = ? AND key = ?",
                (extension_id, key),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def set_state(self, extension_id: str, key: str, value: Any) -> None:
        """Insert or update a value and bump its timestamp."""
        payload = json.dumps(value)
        with self._lock:
            self._conn.execute(
                """INSERT INTO extension_state (extension_id, key, value, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(extension_id, key) DO UPDATE SET
                   value=excluded.value, updated_at=excluded.updated_at""",
                (extension_id, key, payload, time.time()),
            )
            self._conn.commit()

    def delete_state(self, extension_id: str, key: str) -> bool:
        """Delete a value. Returns True if it existed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM extension_state WHERE extension_id = ? AND key = ?",
                (extension_id, key),
            )
            self._conn.commit()
            return cursor.rowcount > 0

    def list_keys(self, extension_id: str) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM extension_state WHERE extension_id = ? ORDER BY key",
                (extension_id,),
            ).fetchall()
        return [r[0] for r in rows]

    def updated_at(self, extension_id: str, key: str) -> float | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT updated_at FROM extension_state WHERE extension_id = ? AND key = ?",
                (extension_id, key),
            ).fetchone()
        return row[0] if row else None

    def scoped(self, extension_id: str) -> ScopedState:
        return ScopedState(self, extension_id)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class ScopedState:
    """View of the store bound to one extension id."""

    def __init__(self, store: ExtensionStateStore, extension_id: str) -> None:
        self._store = store
        self.extension_id = extension_id

    def get(self, key: str, default: Any = None) -> Any:
        value = self._store.get_state(self.extension_id, key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._store.set_state(self.extension_id, key, value)

    def delete(self, key: str) -> bool:
        return self._store.delete_state(self.extension_id, key)

    def keys(self) -> list[str]:
        return self._store.list_keys(self.extension_id)
