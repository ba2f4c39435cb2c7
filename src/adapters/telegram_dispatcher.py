"""Telegram notification adapter — implements NotificationDispatcher.

Schedules one-off jobs on the python-telegram-bot JobQueue. The job name is
the notification handle, so cancelling means removing the job by name. When
a job fires, the note snapshot carried in the payload is sent to every
recipient with an "OK" button that acknowledges the reminder, and the
`on_delivered` hook re-arms the reminder for its following occurrence.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes, JobQueue

from src.core.formatting import format_countdown
from src.ports.notification_port import DispatchError
from src.ports.storage_port import PersistenceError

logger = logging.getLogger(__name__)

ACK_PREFIX = "ack:"


class TelegramDispatcher:
    """Telegram implementation of NotificationDispatcher."""

    def __init__(
        self,
        job_queue: JobQueue | None,
        chat_ids: list[int],
        on_delivered: Callable[[str, datetime], Awaitable[Any]] | None = None,
    ) -> None:
        self._job_queue = job_queue
        self._chat_ids = list(chat_ids)
        self.on_delivered = on_delivered

    async def schedule(
        self,
        title: str,
        body: str,
        fire_at: datetime,
        payload: dict[str, Any],
    ) -> str | None:
        if self._job_queue is None:
            raise DispatchError("JobQueue unavailable (install python-telegram-bot[job-queue])")

        handle = uuid.uuid4().hex
        try:
            self._job_queue.run_once(
                self._deliver,
                when=fire_at,
                data={"title": title, "body": body, **payload},
                name=handle,
            )
        except Exception as exc:
            raise DispatchError(f"Failed to queue notification: {exc}") from exc
        return handle

    async def cancel(self, handle: str) -> None:
        if self._job_queue is None:
            return
        for job in self._job_queue.get_jobs_by_name(handle):
            job.schedule_removal()

    async def _deliver(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        """JobQueue callback: push the notification to every recipient."""
        data: dict[str, Any] = context.job.data
        text = format_notification(data)
        markup = InlineKeyboardMarkup(
            [[InlineKeyboardButton("OK", callback_data=f"{ACK_PREFIX}{data['reminder_id']}")]]
        )

        for chat_id in self._chat_ids:
            try:
                await context.bot.send_message(chat_id=chat_id, text=text, reply_markup=markup)
            except Exception as exc:
                logger.error("Failed to deliver reminder %s to %d: %s", data["reminder_id"], chat_id, exc)
        logger.info("Reminder %s delivered to %d chats", data["reminder_id"], len(self._chat_ids))

        if self.on_delivered is None:
            return
        # One-off job: arm the following occurrence
        try:
            await self.on_delivered(data["reminder_id"], datetime.fromisoformat(data["fire_at"]))
        except PersistenceError as exc:
            logger.error("Failed to re-arm reminder %s after delivery: %s", data["reminder_id"], exc)


def format_notification(data: dict[str, Any]) -> str:
    """Render a delivered notification from its payload."""
    lines = [f"🔔 {data['title']}", "", data["body"]]

    for block in data.get("code_blocks", []):
        lines += ["", f"[{block.get('language') or 'code'}]", block.get("code", "")]

    attachments = data.get("attachments", [])
    if attachments:
        names = [a.get("file_name") or a.get("uri", "") for a in attachments]
        lines += ["", "Attachments: " + ", ".join(names)]

    countdown = data.get("countdown_seconds", 0)
    if countdown:
        lines += ["", f"Countdown: {format_countdown(countdown)}"]

    return "\n".join(lines)
