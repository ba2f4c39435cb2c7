"""
BlinkBrain — Reminder Repository.

Owns the reminders collection. Every mutation that can change scheduling
runs the same cycle:

    modified copy → recompute next_fire_at → reconcile with the dispatcher
    → write the whole collection → adopt it in memory

A PersistenceError from the store propagates to the caller. Records keep
their previous fields; notifications scheduled for the failed write are
cancelled and the previous state is re-armed, so at most one notification
per reminder is ever pending. Ids that don't exist are a silent no-op.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from pydantic import ValidationError

from src.core.reminder_resolver import resolve_next
from src.data.models import Reminder, ScheduleRule
from src.data.note_repository import default_clock
from src.ports.storage_port import KeyValueStore, PersistenceError

if TYPE_CHECKING:
    from src.core.notification_coordinator import NotificationCoordinator

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"schedules", "disabled", "countdown_seconds"}
_SCHEDULE_FIELDS = {
    "kind", "time_of_day", "interval_hours", "days_of_week",
    "anchor", "priority", "active",
}


class ReminderRepository:
    """Durable reminders collection wired to the notification coordinator."""

    def __init__(
        self,
        store: KeyValueStore,
        coordinator: NotificationCoordinator,
        key: str | None = None,
        clock: Callable[[], datetime] | None = None,
        default_countdown_seconds: int | None = None,
    ) -> None:
        from src.config import settings

        self._store = store
        self._coordinator = coordinator
        self._key = key if key is not None else settings.reminders_key
        self._clock = clock or default_clock
        self._default_countdown = (
            default_countdown_seconds
            if default_countdown_seconds is not None
            else settings.DEFAULT_COUNTDOWN_SECONDS
        )
        self._reminders: list[Reminder] = []

    # -- reads --------------------------------------------------------------

    async def load(self) -> list[Reminder]:
        """Read the collection from the store into memory."""
        raw = await self._store.get(self._key)
        try:
            reminders = [Reminder.model_validate(item) for item in raw or []]
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt reminders collection: {exc}") from exc
        self._reminders = reminders
        logger.info("Loaded %d reminders", len(reminders))
        return list(reminders)

    def list_reminders(self) -> list[Reminder]:
        return list(self._reminders)

    def get(self, reminder_id: str) -> Reminder | None:
        for reminder in self._reminders:
            if reminder.id == reminder_id:
                return reminder
        return None

    def get_by_note_id(self, note_id: str) -> Reminder | None:
        for reminder in self._reminders:
            if reminder.note_id == note_id:
                return reminder
        return None

    # -- mutations ----------------------------------------------------------

    async def create(
        self,
        note_id: str,
        schedules: list[ScheduleRule],
        countdown_seconds: int | None = None,
    ) -> Reminder:
        """Create a reminder for `note_id`. At least one schedule is required."""
        if not schedules:
            raise ValueError("A reminder needs at least one schedule")

        now = self._clock()
        reminder = Reminder(
            note_id=note_id,
            schedules=list(schedules),
            countdown_seconds=(
                self._default_countdown if countdown_seconds is None else countdown_seconds
            ),
            created_at=now,
            updated_at=now,
        )
        reminder = await self._schedule(reminder, now)
        await self._commit_or_restore([*self._reminders, reminder], [reminder], [])
        logger.info(
            "Reminder created: %s for note %s (%d schedules, next %s)",
            reminder.id, note_id, len(schedules), _fmt(reminder.next_fire_at),
        )
        return reminder

    async def update(self, reminder_id: str, **changes: Any) -> Reminder | None:
        """Apply schedules / disabled / countdown_seconds changes."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update reminder fields: {sorted(unknown)}")
        return await self._modify(reminder_id, lambda r: dict(changes))

    async def delete(self, reminder_id: str) -> None:
        """Remove the reminder and cancel its pending notification.

        The record is written away first so a failed write leaves the
        reminder live with its notification still pending.
        """
        reminder = self.get(reminder_id)
        if reminder is None:
            logger.debug("delete: reminder %s not found", reminder_id)
            return
        await self._commit([r for r in self._reminders if r.id != reminder_id])
        await self._coordinator.cancel(reminder)
        logger.info("Reminder deleted: %s", reminder_id)

    async def add_schedule(self, reminder_id: str, schedule: ScheduleRule) -> Reminder | None:
        return await self._modify(
            reminder_id, lambda r: {"schedules": [*r.schedules, schedule]},
        )

    async def remove_schedule(self, reminder_id: str, schedule_id: str) -> Reminder | None:
        return await self._modify(
            reminder_id,
            lambda r: {"schedules": [s for s in r.schedules if s.id != schedule_id]},
        )

    async def update_schedule(
        self, reminder_id: str, schedule_id: str, **changes: Any,
    ) -> Reminder | None:
        """Apply field changes to one schedule rule of a reminder."""
        unknown = set(changes) - _SCHEDULE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update schedule fields: {sorted(unknown)}")

        def _patch(reminder: Reminder) -> dict[str, Any]:
            schedules = [
                ScheduleRule.model_validate({**s.model_dump(), **changes})
                if s.id == schedule_id else s
                for s in reminder.schedules
            ]
            return {"schedules": schedules}

        return await self._modify(reminder_id, _patch)

    async def set_disabled(self, reminder_id: str, disabled: bool) -> Reminder | None:
        return await self._modify(reminder_id, lambda r: {"disabled": disabled})

    async def disable(self, reminder_id: str) -> Reminder | None:
        return await self.set_disabled(reminder_id, True)

    async def enable(self, reminder_id: str) -> Reminder | None:
        return await self.set_disabled(reminder_id, False)

    async def mark_triggered(self, reminder_id: str) -> Reminder | None:
        """Record that the reminder fired and move on to its next occurrence."""
        return await self._modify(
            reminder_id, lambda r: {"last_triggered_at": self._clock()},
        )

    async def reschedule(
        self, reminder_id: str, after: datetime | None = None,
    ) -> Reminder | None:
        """Recompute and re-send without changing any field (e.g. note edited).

        `after` moves the reference forward, so a delivery that runs a little
        early still lands on the following occurrence.
        """
        return await self._modify(reminder_id, lambda r: {}, after=after)

    async def reschedule_all(self) -> list[Reminder]:
        """Recompute and reconcile every reminder, then persist once.

        Run at startup: pending notifications don't outlive the dispatcher.
        """
        now = self._clock()
        previous = list(self._reminders)
        refreshed = [await self._schedule(r, now) for r in previous]
        await self._commit_or_restore(refreshed, refreshed, previous)
        pending = sum(1 for r in refreshed if r.notification_handle)
        logger.info("Rescheduled %d reminders (%d pending)", len(refreshed), pending)
        return list(refreshed)

    # -- internals ----------------------------------------------------------

    async def _modify(
        self,
        reminder_id: str,
        build_changes: Callable[[Reminder], dict[str, Any]],
        after: datetime | None = None,
    ) -> Reminder | None:
        current = self.get(reminder_id)
        if current is None:
            logger.debug("Reminder %s not found; nothing to update", reminder_id)
            return None

        now = self._clock()
        changes = build_changes(current)
        changes["updated_at"] = now
        updated = Reminder.model_validate({**current.model_dump(), **changes})
        reference = max(now, after) if after is not None else now
        updated = await self._schedule(updated, reference)

        await self._commit_or_restore(
            [updated if r.id == reminder_id else r for r in self._reminders],
            [updated],
            [current],
        )
        logger.info("Reminder updated: %s (next %s)", reminder_id, _fmt(updated.next_fire_at))
        return updated

    async def _schedule(self, reminder: Reminder, now: datetime) -> Reminder:
        """Recompute the derived next fire time and reconcile the dispatcher."""
        next_fire_at = resolve_next(reminder, now)
        reminder = reminder.model_copy(update={"next_fire_at": next_fire_at})
        return await self._coordinator.reconcile(reminder)

    async def _commit_or_restore(
        self,
        reminders: list[Reminder],
        attempted: list[Reminder],
        previous: list[Reminder],
    ) -> None:
        """Commit, or on a write failure put the dispatcher back in step.

        Notifications scheduled for `attempted` are cancelled and `previous`
        is re-armed in memory, so exactly one notification per reminder
        stays pending. The PersistenceError is re-raised.
        """
        try:
            await self._commit(reminders)
        except PersistenceError:
            for reminder in attempted:
                await self._coordinator.cancel(reminder)
            now = self._clock()
            restored = {r.id: await self._schedule(r, now) for r in previous}
            self._reminders = [restored.get(r.id, r) for r in self._reminders]
            logger.warning(
                "Store write failed; restored %d reminders in memory", len(restored),
            )
            raise

    async def _commit(self, reminders: list[Reminder]) -> None:
        """Persist the whole collection, then adopt it in memory."""
        await self._store.set(self._key, [r.model_dump(mode="json") for r in reminders])
        self._reminders = reminders


def _fmt(instant: datetime | None) -> str:
    return instant.isoformat() if instant else "none"
