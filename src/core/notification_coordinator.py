"""
BlinkBrain — Notification Scheduling Coordinator.

Keeps the dispatcher in step with a reminder's computed next fire time:
the previous notification is always cancelled before a new one is scheduled,
so a reminder never has two pending notifications.

Graceful degradation: dispatcher failures are logged and leave the reminder
without a handle. They never fail the reminder mutation that triggered them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.data.models import Note, Reminder
    from src.ports.note_port import NoteLookup
    from src.ports.notification_port import NotificationDispatcher

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Reminder"
DEFAULT_BODY = "Your reminder is due now."


class NotificationCoordinator:
    """Reconciles reminders against the notification dispatcher."""

    def __init__(self, dispatcher: NotificationDispatcher, notes: NoteLookup) -> None:
        self._dispatcher = dispatcher
        self._notes = notes

    async def reconcile(self, reminder: Reminder) -> Reminder:
        """Cancel the pending notification and schedule the next one.

        Returns a copy of `reminder` whose `notification_handle` reflects
        what is now pending (None when nothing could be scheduled).
        """
        await self.cancel(reminder)

        if reminder.disabled or reminder.next_fire_at is None:
            return reminder.model_copy(update={"notification_handle": None})

        note = self._notes.get_note(reminder.note_id)
        title, body, payload = build_payload(reminder, note)

        try:
            handle = await self._dispatcher.schedule(
                title, body, reminder.next_fire_at, payload,
            )
        except Exception as exc:
            logger.warning(
                "Failed to schedule notification for reminder %s: %s",
                reminder.id, exc,
            )
            handle = None

        if handle is not None:
            logger.info(
                "Reminder %s scheduled at %s (handle %s)",
                reminder.id, reminder.next_fire_at.isoformat(), handle,
            )
        return reminder.model_copy(update={"notification_handle": handle})

    async def cancel(self, reminder: Reminder) -> None:
        """Best-effort cancellation of the reminder's pending notification."""
        handle = reminder.notification_handle
        if handle is None:
            return
        try:
            await self._dispatcher.cancel(handle)
            logger.debug("Cancelled notification %s for reminder %s", handle, reminder.id)
        except Exception as exc:
            logger.warning(
                "Failed to cancel notification %s for reminder %s: %s",
                handle, reminder.id, exc,
            )


def build_payload(
    reminder: Reminder, note: Note | None,
) -> tuple[str, str, dict[str, Any]]:
    """Build (title, body, payload) with a denormalized snapshot of the note.

    The payload is JSON-ready so any dispatcher can carry it as-is; the
    delivery side reads the countdown, attachments and code blocks from it
    without going back to storage.
    """
    title = (note.title.strip() if note else "") or DEFAULT_TITLE
    body = (note.content.strip() if note else "") or DEFAULT_BODY

    payload: dict[str, Any] = {
        "reminder_id": reminder.id,
        "note_id": reminder.note_id,
        "title": title,
        "body": body,
        "countdown_seconds": reminder.countdown_seconds,
        "fire_at": reminder.next_fire_at.isoformat() if reminder.next_fire_at else None,
        "attachments": [a.model_dump(mode="json") for a in note.attachments] if note else [],
        "code_blocks": [c.model_dump(mode="json") for c in note.code_blocks] if note else [],
    }
    return title, body, payload
