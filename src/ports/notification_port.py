"""Notification port — abstract interface for scheduling notifications.

Core modules depend on this protocol, never on a specific delivery platform.
The dispatcher owns the actual wake-up: the core only asks it to schedule a
notification at an absolute instant, or to cancel one it scheduled earlier.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class DispatchError(Exception):
    """Raised when a dispatcher cannot schedule or cancel a notification."""


class NotificationDispatcher(Protocol):
    """Abstract notification interface used by the coordinator."""

    async def schedule(
        self,
        title: str,
        body: str,
        fire_at: datetime,
        payload: dict[str, Any],
    ) -> str | None: ...

    async def cancel(self, handle: str) -> None: ...
