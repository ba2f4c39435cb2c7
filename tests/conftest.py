"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides an in-memory store, a recording dispatcher and wired-up
repositories driven by a fixed clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timezone

import pytest


# Monday 2025-01-13 08:00 UTC
FIXED_NOW = datetime(2025, 1, 13, 8, 0, tzinfo=timezone.utc)


class FakeDispatcher:
    """Records scheduled notifications; handles are sequential strings."""

    def __init__(self) -> None:
        self.pending: dict[str, dict] = {}
        self.scheduled: list[dict] = []
        self.cancelled: list[str] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self._counter = 0

    async def schedule(self, title, body, fire_at, payload):
        if self.fail_schedule:
            from src.ports.notification_port import DispatchError
            raise DispatchError("scheduling refused")
        self._counter += 1
        handle = f"h{self._counter}"
        entry = {"title": title, "body": body, "fire_at": fire_at, "payload": payload}
        self.pending[handle] = entry
        self.scheduled.append(entry)
        return handle

    async def cancel(self, handle):
        if self.fail_cancel:
            from src.ports.notification_port import DispatchError
            raise DispatchError("cancel refused")
        self.cancelled.append(handle)
        self.pending.pop(handle, None)


class Clock:
    """Mutable clock so tests can move time forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    from src.adapters.memory_store import MemoryKeyValueStore
    return MemoryKeyValueStore()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def note_repo(store, clock):
    from src.data.note_repository import NoteRepository
    return NoteRepository(store, key="test:notes", clock=clock)


@pytest.fixture
def coordinator(dispatcher, note_repo):
    from src.core.notification_coordinator import NotificationCoordinator
    return NotificationCoordinator(dispatcher, note_repo)


@pytest.fixture
def reminder_repo(store, coordinator, clock):
    from src.data.reminder_repository import ReminderRepository
    return ReminderRepository(
        store, coordinator, key="test:reminders", clock=clock,
        default_countdown_seconds=60,
    )


@pytest.fixture
def note_service(note_repo, reminder_repo):
    from src.core.note_service import NoteService
    return NoteService(note_repo, reminder_repo)
