"""Note port — read-only note lookup used to build notification payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.data.models import Note


class NoteLookup(Protocol):
    """Abstract note lookup used by the notification coordinator."""

    def get_note(self, note_id: str) -> Note | None: ...
