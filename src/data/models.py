"""
BlinkBrain — Data Models.

Notes and reminders persist as JSON arrays in the key-value store, so every
record here is a pydantic model: `model_dump(mode="json")` on the way out,
`model_validate` on the way in.
"""

from __future__ import annotations

import uuid
from datetime import datetime, time
from enum import Enum

from pydantic import BaseModel, Field


def new_id() -> str:
    return uuid.uuid4().hex


class ScheduleKind(str, Enum):
    """Closed set of recurrence kinds."""

    ONCE = "once"
    DAILY = "daily"
    HOURLY = "hourly"
    SPECIFIC_TIME = "specific-time"
    WEEKLY = "weekly"
    ALTERNATE_DAY = "alternate-day"


class ScheduleRule(BaseModel):
    """One recurrence definition attached to a reminder.

    Which optional fields matter depends on `kind`:

    - once:          anchor
    - hourly:        interval_hours (defaults to 1)
    - daily:         time_of_day
    - specific-time: anchor (date part) + time_of_day
    - weekly:        days_of_week + time_of_day
    - alternate-day: anchor (cycle origin) + time_of_day

    JSON example:
    {
        "id": "3f2b...",
        "kind": "weekly",
        "time_of_day": "10:00:00",
        "days_of_week": [1, 3],
        "priority": 0,
        "active": true
    }
    """

    id: str = Field(default_factory=new_id)
    kind: ScheduleKind
    time_of_day: time | None = None
    interval_hours: int | None = None
    days_of_week: list[int] = Field(default_factory=list)  # 0 = Sunday
    anchor: datetime | None = None
    priority: int = 0
    active: bool = True


class Reminder(BaseModel):
    """A schedulable entity linking one note to its schedule rules."""

    id: str = Field(default_factory=new_id)
    note_id: str
    schedules: list[ScheduleRule] = Field(default_factory=list)
    countdown_seconds: int = Field(default=60, ge=0)
    disabled: bool = False
    last_triggered_at: datetime | None = None
    next_fire_at: datetime | None = None          # derived, recomputed on every mutation
    notification_handle: str | None = None        # pending dispatcher token
    created_at: datetime
    updated_at: datetime


class AttachmentType(str, Enum):
    IMAGE = "image"
    FILE = "file"


class NoteAttachment(BaseModel):
    id: str = Field(default_factory=new_id)
    type: AttachmentType
    uri: str
    file_name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    added_at: datetime


class CodeBlock(BaseModel):
    id: str = Field(default_factory=new_id)
    language: str
    code: str
    added_at: datetime


class Note(BaseModel):
    """A user note. Soft-deleted notes stay in the collection until purged."""

    id: str = Field(default_factory=new_id)
    title: str
    content: str = ""
    created_at: datetime
    updated_at: datetime
    pinned: bool = False
    deleted: bool = False
    deleted_at: datetime | None = None
    attachments: list[NoteAttachment] = Field(default_factory=list)
    code_blocks: list[CodeBlock] = Field(default_factory=list)
    reminder_id: str | None = None


class NoteFilters(BaseModel):
    """Listing filters; unset flags don't filter."""

    pinned_only: bool = False
    with_reminder_only: bool = False
    with_attachments_only: bool = False
    search_query: str = ""
