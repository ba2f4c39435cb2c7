"""In-process key-value store — implements KeyValueStore.

Used for ephemeral runs (DATABASE_PATH=":memory:") and in tests. Values are
stored as JSON text so callers never share mutable state with the store.
"""

from __future__ import annotations

import json
from typing import Any

from src.ports.storage_port import PersistenceError


class MemoryKeyValueStore:
    """Dict-backed implementation of KeyValueStore."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        text = self._data.get(key)
        return None if text is None else json.loads(text)

    async def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to write {key!r}: {exc}") from exc

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()
