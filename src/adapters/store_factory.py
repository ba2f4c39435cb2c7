"""Storage adapter factory — creates the right store based on config."""

from __future__ import annotations

from src.config import settings
from src.ports.storage_port import KeyValueStore


def create_store(db_path: str | None = None) -> KeyValueStore:
    """Return the key-value store matching DATABASE_PATH.

    Args:
        db_path: Overrides the configured path. ":memory:" selects the
                 in-process store.
    """
    path = db_path if db_path is not None else settings.DATABASE_PATH

    if path == ":memory:":
        from src.adapters.memory_store import MemoryKeyValueStore

        return MemoryKeyValueStore()

    from src.adapters.sqlite_store import SQLiteKeyValueStore

    return SQLiteKeyValueStore(db_path=path)
