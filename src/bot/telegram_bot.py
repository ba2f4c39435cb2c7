"""
BlinkBrain — Telegram Bot.

Thin host around the reminder engine: wires storage, repositories and the
Telegram dispatcher together, reschedules every reminder at startup, and
exposes a handful of commands to inspect and toggle reminders.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from datetime import time as dt_time
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from src.config import settings
from src.ports.storage_port import PersistenceError

if TYPE_CHECKING:
    from src.core.note_service import NoteService
    from src.data.note_repository import NoteRepository
    from src.data.reminder_repository import ReminderRepository
    from src.ports.storage_port import KeyValueStore

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

HELP_TEXT = (
    "BlinkBrain commands:\n"
    "/remind HH:MM <text> — new note with a daily reminder\n"
    "/notes — list notes\n"
    "/reminders — list reminders and their next fire time\n"
    "/disable <reminder_id> — pause a reminder\n"
    "/enable <reminder_id> — resume a reminder\n"
    "/delete <note_id> — delete a note and its reminder"
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores updates from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def _parse_time(raw: str) -> dt_time | None:
    """Parse "HH:MM" (24h) into a time, or None."""
    match = _TIME_RE.match(raw.strip())
    if not match:
        return None
    return dt_time(int(match.group(1)), int(match.group(2)))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start and /help."""
    await update.message.reply_text(HELP_TEXT)


@authorized_only
async def cmd_notes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /notes — list non-deleted notes, pinned first."""
    notes: NoteRepository = context.bot_data["notes"]
    items = notes.list_notes()
    if not items:
        await update.message.reply_text("No notes yet.")
        return

    lines = ["Notes:"]
    for note in items:
        pin = "📌 " if note.pinned else ""
        bell = " 🔔" if note.reminder_id else ""
        lines.append(f"{note.id} — {pin}{note.title}{bell}")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders — next fire time and headline schedule of each reminder."""
    from src.core.formatting import describe_schedule, format_countdown
    from src.core.reminder_resolver import get_priority_schedule, should_trigger

    notes: NoteRepository = context.bot_data["notes"]
    reminders: ReminderRepository = context.bot_data["reminders"]
    items = reminders.list_reminders()
    if not items:
        await update.message.reply_text("No reminders.")
        return

    now = datetime.now(timezone.utc)
    window = timedelta(seconds=settings.TRIGGER_WINDOW_SECONDS)
    lines = ["Reminders:"]
    for reminder in items:
        note = notes.get_note(reminder.note_id)
        title = note.title if note else "(missing note)"
        if reminder.disabled:
            status = "disabled"
        elif should_trigger(reminder, now, window):
            status = "due now"
        elif reminder.next_fire_at is None:
            status = "no upcoming time"
        else:
            status = "next " + reminder.next_fire_at.strftime("%a %Y-%m-%d %H:%M")
        headline = get_priority_schedule(reminder)
        preview = describe_schedule(headline) if headline else "-"
        lines.append(
            f"{reminder.id} — {title}: {preview}; {status}; "
            f"countdown {format_countdown(reminder.countdown_seconds)}"
        )
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_remind(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind HH:MM <text> — create a note with a daily reminder."""
    from src.data.models import ScheduleKind, ScheduleRule

    args = context.args or []
    at = _parse_time(args[0]) if args else None
    text = " ".join(args[1:]).strip()
    if at is None or not text:
        await update.message.reply_text("Usage: /remind HH:MM <text>")
        return

    service: NoteService = context.bot_data["service"]
    rule = ScheduleRule(kind=ScheduleKind.DAILY, time_of_day=at)
    try:
        note = await service.save_note(title=text, content="", schedules=[rule])
    except PersistenceError as exc:
        logger.error("/remind error: %s", exc)
        await update.message.reply_text("Couldn't save the reminder. Please try again.")
        return

    reminders: ReminderRepository = context.bot_data["reminders"]
    reminder = reminders.get(note.reminder_id) if note and note.reminder_id else None
    when = reminder.next_fire_at.strftime("%a %H:%M") if reminder and reminder.next_fire_at else "-"
    await update.message.reply_text(f"Saved '{text}'. Daily at {at:%H:%M}, next {when}.")


async def _toggle(update: Update, context: ContextTypes.DEFAULT_TYPE, disabled: bool) -> None:
    command = "/disable" if disabled else "/enable"
    args = context.args or []
    if not args:
        await update.message.reply_text(
            f"Usage: {command} <reminder_id>\nUse /reminders to see IDs."
        )
        return

    reminders: ReminderRepository = context.bot_data["reminders"]
    try:
        reminder = await reminders.set_disabled(args[0], disabled)
    except PersistenceError as exc:
        logger.error("%s error: %s", command, exc)
        await update.message.reply_text("Couldn't update the reminder. Please try again.")
        return

    if reminder is None:
        await update.message.reply_text("Unknown reminder ID. Use /reminders to see valid IDs.")
        return
    await update.message.reply_text(
        f"Reminder {reminder.id} {'disabled' if disabled else 'enabled'}."
    )


@authorized_only
async def cmd_disable(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /disable <id>."""
    await _toggle(update, context, disabled=True)


@authorized_only
async def cmd_enable(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /enable <id>."""
    await _toggle(update, context, disabled=False)


@authorized_only
async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <note_id> — delete a note and its reminder."""
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /delete <note_id>\nUse /notes to see IDs.")
        return

    notes: NoteRepository = context.bot_data["notes"]
    if notes.get_note(args[0]) is None:
        await update.message.reply_text("Unknown note ID. Use /notes to see valid IDs.")
        return

    service: NoteService = context.bot_data["service"]
    try:
        await service.delete_note(args[0])
    except PersistenceError as exc:
        logger.error("/delete error: %s", exc)
        await update.message.reply_text("Couldn't delete the note. Please try again.")
        return
    await update.message.reply_text("Note deleted.")


@authorized_only
async def _handle_ack_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the "OK" button on a delivered reminder."""
    from src.adapters.telegram_dispatcher import ACK_PREFIX

    query = update.callback_query
    await query.answer()
    reminder_id = query.data[len(ACK_PREFIX):]

    service: NoteService = context.bot_data["service"]
    try:
        reminder = await service.acknowledge(reminder_id)
    except PersistenceError as exc:
        logger.error("ack error: %s", exc)
        return

    if reminder is not None:
        await query.edit_message_reply_markup(reply_markup=None)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(store: KeyValueStore | None = None) -> Application:
    """Build the Telegram Application with the reminder engine wired in.

    Args:
        store: Key-value store implementation. Defaults to the one selected
               by DATABASE_PATH.
    """
    from src.adapters.telegram_dispatcher import ACK_PREFIX, TelegramDispatcher
    from src.core.note_service import NoteService
    from src.core.notification_coordinator import NotificationCoordinator
    from src.data.note_repository import NoteRepository
    from src.data.reminder_repository import ReminderRepository

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).post_init(_on_startup).build()

    if store is None:
        from src.adapters.store_factory import create_store
        store = create_store()

    notes = NoteRepository(store)
    dispatcher = TelegramDispatcher(app.job_queue, settings.ALLOWED_USER_IDS)
    coordinator = NotificationCoordinator(dispatcher, notes)
    reminders = ReminderRepository(store, coordinator)
    dispatcher.on_delivered = reminders.reschedule

    app.bot_data["notes"] = notes
    app.bot_data["reminders"] = reminders
    app.bot_data["service"] = NoteService(notes, reminders)

    app.add_handler(CommandHandler(["start", "help"], cmd_start))
    app.add_handler(CommandHandler("notes", cmd_notes))
    app.add_handler(CommandHandler("reminders", cmd_reminders))
    app.add_handler(CommandHandler("remind", cmd_remind))
    app.add_handler(CommandHandler("disable", cmd_disable))
    app.add_handler(CommandHandler("enable", cmd_enable))
    app.add_handler(CommandHandler("delete", cmd_delete))
    app.add_handler(CallbackQueryHandler(_handle_ack_callback, pattern=rf"^{ACK_PREFIX}"))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


async def _on_startup(app: Application) -> None:
    """Load both collections and re-arm every pending reminder."""
    notes: NoteRepository = app.bot_data["notes"]
    reminders: ReminderRepository = app.bot_data["reminders"]

    await notes.load()
    await reminders.load()
    await reminders.reschedule_all()


def main() -> None:
    """Entry point: build the app and start polling."""
    logger.info("Starting BlinkBrain bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
