"""
BlinkBrain — Note Repository.

Owns the notes collection. Every mutation writes the whole collection back
to the store first and only then replaces the in-memory snapshot, so a failed
write leaves the previous state authoritative.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from src.data.models import CodeBlock, Note, NoteAttachment, NoteFilters
from src.ports.storage_port import KeyValueStore, PersistenceError

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"title", "content", "attachments", "code_blocks", "pinned", "reminder_id"}


def default_clock() -> datetime:
    """Current wall-clock time in the configured timezone."""
    from src.config import settings

    return datetime.now(ZoneInfo(settings.TIMEZONE))


class NoteRepository:
    """Durable notes collection; also serves as the NoteLookup port."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if key is None:
            from src.config import settings
            key = settings.notes_key

        self._store = store
        self._key = key
        self._clock = clock or default_clock
        self._notes: list[Note] = []

    # -- reads --------------------------------------------------------------

    async def load(self) -> list[Note]:
        """Read the collection from the store into memory."""
        raw = await self._store.get(self._key)
        try:
            notes = [Note.model_validate(item) for item in raw or []]
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt notes collection: {exc}") from exc
        self._notes = notes
        logger.info("Loaded %d notes", len(notes))
        return list(notes)

    def get_note(self, note_id: str) -> Note | None:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def list_notes(self, filters: NoteFilters | None = None) -> list[Note]:
        """Non-deleted notes matching `filters`, pinned first, newest edits first."""
        filters = filters or NoteFilters()
        result = [n for n in self._notes if not n.deleted]

        if filters.pinned_only:
            result = [n for n in result if n.pinned]
        if filters.with_reminder_only:
            result = [n for n in result if n.reminder_id]
        if filters.with_attachments_only:
            result = [n for n in result if n.attachments]
        if filters.search_query:
            query = filters.search_query.lower()
            result = [
                n for n in result
                if query in n.title.lower() or query in n.content.lower()
            ]

        result.sort(key=lambda n: n.updated_at, reverse=True)
        result.sort(key=lambda n: not n.pinned)
        return result

    # -- mutations ----------------------------------------------------------

    async def create_note(self, title: str, content: str = "") -> Note:
        now = self._clock()
        note = Note(title=title, content=content, created_at=now, updated_at=now)
        await self._commit([*self._notes, note])
        logger.info("Note created: %s '%s'", note.id, title)
        return note

    async def update_note(self, note_id: str, **changes: Any) -> Note | None:
        """Apply field changes to a note. Unknown ids are ignored."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update note fields: {sorted(unknown)}")
        return await self._modify(note_id, lambda n: changes)

    async def delete_note(self, note_id: str) -> None:
        """Remove a note permanently. Unknown ids are ignored."""
        if self.get_note(note_id) is None:
            logger.debug("delete_note: note %s not found", note_id)
            return
        await self._commit([n for n in self._notes if n.id != note_id])
        logger.info("Note deleted: %s", note_id)

    async def soft_delete_note(self, note_id: str) -> Note | None:
        return await self._modify(
            note_id,
            lambda n: {"deleted": True, "deleted_at": self._clock()},
            touch=False,
        )

    async def restore_note(self, note_id: str) -> Note | None:
        return await self._modify(
            note_id, lambda n: {"deleted": False, "deleted_at": None}, touch=False,
        )

    async def pin_note(self, note_id: str) -> Note | None:
        return await self._modify(note_id, lambda n: {"pinned": True})

    async def unpin_note(self, note_id: str) -> Note | None:
        return await self._modify(note_id, lambda n: {"pinned": False})

    async def add_attachment(self, note_id: str, attachment: NoteAttachment) -> Note | None:
        return await self._modify(
            note_id, lambda n: {"attachments": [*n.attachments, attachment]},
        )

    async def remove_attachment(self, note_id: str, attachment_id: str) -> Note | None:
        return await self._modify(
            note_id,
            lambda n: {"attachments": [a for a in n.attachments if a.id != attachment_id]},
        )

    async def add_code_block(self, note_id: str, code_block: CodeBlock) -> Note | None:
        return await self._modify(
            note_id, lambda n: {"code_blocks": [*n.code_blocks, code_block]},
        )

    async def remove_code_block(self, note_id: str, code_block_id: str) -> Note | None:
        return await self._modify(
            note_id,
            lambda n: {"code_blocks": [c for c in n.code_blocks if c.id != code_block_id]},
        )

    # -- internals ----------------------------------------------------------

    async def _modify(
        self,
        note_id: str,
        build_changes: Callable[[Note], dict[str, Any]],
        touch: bool = True,
    ) -> Note | None:
        current = self.get_note(note_id)
        if current is None:
            logger.debug("Note %s not found; nothing to update", note_id)
            return None

        changes = build_changes(current)
        if touch:
            changes["updated_at"] = self._clock()
        updated = Note.model_validate({**current.model_dump(), **changes})

        await self._commit([updated if n.id == note_id else n for n in self._notes])
        return updated

    async def _commit(self, notes: list[Note]) -> None:
        """Persist the whole collection, then adopt it in memory."""
        await self._store.set(self._key, [n.model_dump(mode="json") for n in notes])
        self._notes = notes
