"""Human-readable text for countdowns and schedule previews."""

from __future__ import annotations

from src.data.models import ScheduleKind, ScheduleRule

_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def format_countdown(seconds: int) -> str:
    """Format a countdown duration: "1h 5m", "2m 5s" or "45s"."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def describe_schedule(rule: ScheduleRule) -> str:
    """One-line preview of a schedule rule, e.g. "Mon, Wed at 10:00"."""
    at = rule.time_of_day.strftime("%H:%M") if rule.time_of_day else "--:--"

    if rule.kind is ScheduleKind.ONCE:
        if rule.anchor is None:
            return "Once (no date set)"
        return f"Once on {rule.anchor.strftime('%Y-%m-%d %H:%M')}"
    if rule.kind is ScheduleKind.HOURLY:
        hours = rule.interval_hours or 1
        return "Every hour" if hours == 1 else f"Every {hours} hours"
    if rule.kind is ScheduleKind.DAILY:
        return f"Daily at {at}"
    if rule.kind is ScheduleKind.SPECIFIC_TIME:
        day = rule.anchor.strftime("%Y-%m-%d") if rule.anchor else "(no date set)"
        return f"On {day} at {at}"
    if rule.kind is ScheduleKind.WEEKLY:
        days = ", ".join(_DAY_NAMES[d] for d in sorted(set(rule.days_of_week)) if 0 <= d <= 6)
        return f"{days or 'No days'} at {at}"
    if rule.kind is ScheduleKind.ALTERNATE_DAY:
        return f"Every other day at {at}"
    return rule.kind.value
