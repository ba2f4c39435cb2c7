"""Schedule rule evaluator — pure date/time arithmetic.

Given one schedule rule and a reference instant ("now"), computes the next
instant strictly after the reference at which the rule fires.

No I/O and no clock reads: callers always pass the reference instant.
A rule missing the fields its kind needs is treated as misconfigured and
yields None rather than raising.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable

from src.data.models import ScheduleKind, ScheduleRule

logger = logging.getLogger(__name__)

_ALTERNATE_DAY_PERIOD = 2


def next_occurrence(rule: ScheduleRule, reference: datetime) -> datetime | None:
    """Return the next fire instant of `rule` strictly after `reference`, or None."""
    evaluator = _EVALUATORS.get(rule.kind)
    if evaluator is None:
        return None
    return evaluator(rule, reference)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compose(day: date, time_of_day: time, tz: tzinfo | None) -> datetime:
    """Combine a calendar day with an HH:MM wall-clock time (seconds zeroed)."""
    return datetime.combine(day, time(time_of_day.hour, time_of_day.minute), tzinfo=tz)


def _in_reference_zone(instant: datetime, reference: datetime) -> datetime:
    """Express `instant` on the same wall clock as `reference`.

    Naive anchors are read as wall-clock times in the reference's zone.
    """
    if reference.tzinfo is None:
        return instant.replace(tzinfo=None)
    if instant.tzinfo is None:
        return instant.replace(tzinfo=reference.tzinfo)
    return instant.astimezone(reference.tzinfo)


def _sunday_based_weekday(day: date) -> int:
    """0 = Sunday … 6 = Saturday (Python's weekday() starts on Monday)."""
    return (day.weekday() + 1) % 7


# ---------------------------------------------------------------------------
# Per-kind evaluators
# ---------------------------------------------------------------------------


def _next_once(rule: ScheduleRule, reference: datetime) -> datetime | None:
    if rule.anchor is None:
        return None
    anchor = _in_reference_zone(rule.anchor, reference)
    return anchor if anchor > reference else None


def _next_hourly(rule: ScheduleRule, reference: datetime) -> datetime | None:
    hours = 1 if rule.interval_hours is None else rule.interval_hours
    if hours <= 0:
        logger.debug("Hourly rule %s has non-positive interval %d", rule.id, hours)
        return None

    top_of_hour = reference.replace(minute=0, second=0, microsecond=0)
    if top_of_hour.tzinfo is None:
        return top_of_hour + timedelta(hours=hours)
    # Step in UTC so the gap is `hours` elapsed hours across DST changes
    tz = top_of_hour.tzinfo
    advanced = (top_of_hour.astimezone(timezone.utc) + timedelta(hours=hours)).astimezone(tz)
    candidate = _local_top_of_hour(advanced)
    # Half-hour DST shifts: land on the next local HH:00 after the reference
    after = reference.astimezone(timezone.utc)
    while candidate.minute != 0 or candidate.astimezone(timezone.utc) <= after:
        candidate = _local_top_of_hour(candidate + timedelta(hours=1))
    return candidate


def _local_top_of_hour(instant: datetime) -> datetime:
    """Truncate to the local HH:00, normalized through UTC.

    A wall time skipped by a DST gap normalizes to a non-zero minute.
    """
    truncated = instant.replace(minute=0, second=0, microsecond=0)
    return truncated.astimezone(timezone.utc).astimezone(instant.tzinfo)


def _next_daily(rule: ScheduleRule, reference: datetime) -> datetime | None:
    if rule.time_of_day is None:
        return None

    today = reference.date()
    candidate = _compose(today, rule.time_of_day, reference.tzinfo)
    if candidate <= reference:
        candidate = _compose(today + timedelta(days=1), rule.time_of_day, reference.tzinfo)
    return candidate


def _next_specific_time(rule: ScheduleRule, reference: datetime) -> datetime | None:
    if rule.time_of_day is None or rule.anchor is None:
        return None

    anchor_day = _in_reference_zone(rule.anchor, reference).date()
    candidate = _compose(anchor_day, rule.time_of_day, reference.tzinfo)
    return candidate if candidate > reference else None


def _next_weekly(rule: ScheduleRule, reference: datetime) -> datetime | None:
    if rule.time_of_day is None or not rule.days_of_week:
        return None

    wanted = set(rule.days_of_week)
    today = reference.date()
    # Today plus the following seven days: a single-day rule whose time
    # already passed today must land on the same weekday next week.
    for offset in range(8):
        day = today + timedelta(days=offset)
        if _sunday_based_weekday(day) not in wanted:
            continue
        candidate = _compose(day, rule.time_of_day, reference.tzinfo)
        if candidate > reference:
            return candidate
    return None


def _next_alternate_day(rule: ScheduleRule, reference: datetime) -> datetime | None:
    if rule.time_of_day is None or rule.anchor is None:
        return None

    start_day = _in_reference_zone(rule.anchor, reference).date()
    today = reference.date()
    if today < start_day:
        return _compose(start_day, rule.time_of_day, reference.tzinfo)

    days_since_start = (today - start_day).days
    candidate_day = today if days_since_start % _ALTERNATE_DAY_PERIOD == 0 else today + timedelta(days=1)
    candidate = _compose(candidate_day, rule.time_of_day, reference.tzinfo)
    if candidate <= reference:
        candidate = _compose(
            candidate_day + timedelta(days=_ALTERNATE_DAY_PERIOD),
            rule.time_of_day,
            reference.tzinfo,
        )
    return candidate


_EVALUATORS: dict[ScheduleKind, Callable[[ScheduleRule, datetime], datetime | None]] = {
    ScheduleKind.ONCE: _next_once,
    ScheduleKind.HOURLY: _next_hourly,
    ScheduleKind.DAILY: _next_daily,
    ScheduleKind.SPECIFIC_TIME: _next_specific_time,
    ScheduleKind.WEEKLY: _next_weekly,
    ScheduleKind.ALTERNATE_DAY: _next_alternate_day,
}
