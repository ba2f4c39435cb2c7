"""
BlinkBrain — SQLite key-value store.

Implements KeyValueStore on a single `kv` table holding JSON text. Each note
or reminder collection lives under one key and is rewritten as a whole.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from src.ports.storage_port import PersistenceError

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    """SQLite-backed implementation of KeyValueStore."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _init_db(self) -> None:
        """Create the kv table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
        logger.debug("Key-value table initialized at %s", self._db_path)

    # -- blocking primitives (run in a worker thread) -----------------------

    def _get_sync(self, key: str) -> Any | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def _set_sync(self, key: str, value: Any) -> None:
        text = json.dumps(value)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, text),
            )

    def _remove_sync(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def _clear_sync(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv")

    # -- KeyValueStore ------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError(f"Failed to read {key!r}: {exc}") from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to write {key!r}: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._remove_sync, key)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to remove {key!r}: {exc}") from exc

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._clear_sync)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to clear store: {exc}") from exc
        logger.info("Key-value store cleared at %s", self._db_path)
