"""Reminder next-time resolver.

Aggregates the active schedule rules of a reminder and picks the earliest
upcoming occurrence. Priority never influences the fire time: it only picks
which schedule is shown as the reminder's headline in previews.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from src.core.schedule_engine import next_occurrence
from src.data.models import Reminder, ScheduleRule

_DEFAULT_TRIGGER_WINDOW = timedelta(minutes=1)


def resolve_next(reminder: Reminder, reference: datetime) -> datetime | None:
    """Return the earliest next occurrence across active rules, or None."""
    if reminder.disabled or not reminder.schedules:
        return None

    candidates: list[datetime] = []
    for rule in reminder.schedules:
        if not rule.active:
            continue
        occurrence = next_occurrence(rule, reference)
        if occurrence is not None:
            candidates.append(occurrence)

    if not candidates:
        return None
    return min(candidates)


def get_priority_schedule(reminder: Reminder) -> ScheduleRule | None:
    """Return the highest-priority active rule (first listed wins ties)."""
    if reminder.disabled:
        return None

    best: ScheduleRule | None = None
    for rule in reminder.schedules:
        if not rule.active:
            continue
        if best is None or rule.priority > best.priority:
            best = rule
    return best


def should_trigger(
    reminder: Reminder,
    now: datetime,
    window: timedelta = _DEFAULT_TRIGGER_WINDOW,
) -> bool:
    """True when `now` falls within `window` after the cached next fire time."""
    if reminder.next_fire_at is None:
        return False
    elapsed = now - reminder.next_fire_at
    return timedelta(0) <= elapsed < window
