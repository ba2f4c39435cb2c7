"""Storage port — abstract interface for durable key-value storage.

Repositories depend on this protocol, never on a specific backend.
Values are JSON-compatible (dicts, lists, strings, numbers, booleans, None).
"""

from __future__ import annotations

from typing import Any, Protocol


class PersistenceError(Exception):
    """Raised when any storage backend read or write fails."""


class KeyValueStore(Protocol):
    """Abstract string-keyed store used by the repositories."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def clear(self) -> None: ...
