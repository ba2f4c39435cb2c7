"""
BlinkBrain — Note Service.

Keeps a note and its reminder consistent when the user saves or deletes a
note. Callers hand over the full editor state; the service decides whether
the reminder has to be created, updated, or removed.

Content edits that end up in a notification payload go through this
service, which re-sends the pending notification. Writing those fields
through NoteRepository directly leaves the pending payload as it was.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.data.models import CodeBlock, Note, NoteAttachment, Reminder, ScheduleRule
    from src.data.note_repository import NoteRepository
    from src.data.reminder_repository import ReminderRepository

logger = logging.getLogger(__name__)


class NoteService:
    """Coordinates the notes and reminders repositories."""

    def __init__(self, notes: NoteRepository, reminders: ReminderRepository) -> None:
        self._notes = notes
        self._reminders = reminders

    async def save_note(
        self,
        title: str,
        content: str,
        attachments: list[NoteAttachment] | None = None,
        code_blocks: list[CodeBlock] | None = None,
        schedules: list[ScheduleRule] | None = None,
        reminder_disabled: bool = False,
        note_id: str | None = None,
        countdown_seconds: int | None = None,
    ) -> Note | None:
        """Create or update a note together with its reminder.

        - schedules given, no reminder yet  → create one and link it
        - schedules given, reminder exists  → replace schedules / disabled flag
          (this also re-sends the pending notification with the edited text)
        - no schedules, reminder exists     → delete it and unlink

        Returns the saved note, or None when `note_id` is unknown.
        """
        schedules = schedules or []

        if note_id is None:
            note = await self._notes.create_note(title, content)
        else:
            note = self._notes.get_note(note_id)
            if note is None:
                logger.debug("save_note: note %s not found", note_id)
                return None

        note = await self._notes.update_note(
            note.id,
            title=title,
            content=content,
            attachments=list(attachments or []),
            code_blocks=list(code_blocks or []),
        )

        reminder = self._reminders.get(note.reminder_id) if note.reminder_id else None

        if reminder is None and schedules:
            reminder = await self._reminders.create(note.id, schedules, countdown_seconds)
            if reminder_disabled:
                await self._reminders.disable(reminder.id)
            note = await self._notes.update_note(note.id, reminder_id=reminder.id)
        elif reminder is not None and schedules:
            changes: dict = {"schedules": schedules, "disabled": reminder_disabled}
            if countdown_seconds is not None:
                changes["countdown_seconds"] = countdown_seconds
            await self._reminders.update(reminder.id, **changes)
        elif reminder is not None:
            await self._reminders.delete(reminder.id)
            note = await self._notes.update_note(note.id, reminder_id=None)
        elif note.reminder_id:
            # Dangling link to a reminder that no longer exists
            note = await self._notes.update_note(note.id, reminder_id=None)

        return note

    async def delete_note(self, note_id: str) -> None:
        """Delete a note and, first, the reminder attached to it."""
        note = self._notes.get_note(note_id)
        reminder = self._reminders.get_by_note_id(note_id)
        if reminder is not None:
            await self._reminders.delete(reminder.id)
        if note is not None:
            await self._notes.delete_note(note_id)
            logger.info("Note %s deleted with its reminder", note_id)

    async def acknowledge(self, reminder_id: str) -> Reminder | None:
        """The user dismissed a delivered notification."""
        return await self._reminders.mark_triggered(reminder_id)

    async def add_attachment(self, note_id: str, attachment: NoteAttachment) -> Note | None:
        return await self._refresh(await self._notes.add_attachment(note_id, attachment))

    async def remove_attachment(self, note_id: str, attachment_id: str) -> Note | None:
        return await self._refresh(await self._notes.remove_attachment(note_id, attachment_id))

    async def add_code_block(self, note_id: str, code_block: CodeBlock) -> Note | None:
        return await self._refresh(await self._notes.add_code_block(note_id, code_block))

    async def remove_code_block(self, note_id: str, code_block_id: str) -> Note | None:
        return await self._refresh(await self._notes.remove_code_block(note_id, code_block_id))

    async def _refresh(self, note: Note | None) -> Note | None:
        """Re-send the pending notification so its note snapshot is current."""
        if note is not None and note.reminder_id:
            await self._reminders.reschedule(note.reminder_id)
        return note
