"""Tests for src.core.note_service — keeping notes and reminders consistent."""

from datetime import datetime, time, timezone

import pytest

from src.data.models import AttachmentType, CodeBlock, NoteAttachment, ScheduleKind, ScheduleRule

UTC = timezone.utc
NOW = datetime(2025, 1, 13, 8, 0, tzinfo=UTC)


def _daily(hour: int) -> ScheduleRule:
    return ScheduleRule(kind=ScheduleKind.DAILY, time_of_day=time(hour, 0))


class TestSaveNote:
    @pytest.mark.asyncio
    async def test_new_note_without_schedules(self, note_service, reminder_repo):
        note = await note_service.save_note("Idea", "write it down")
        assert note.reminder_id is None
        assert reminder_repo.list_reminders() == []

    @pytest.mark.asyncio
    async def test_new_note_with_schedules_links_reminder(
        self, note_service, reminder_repo, dispatcher,
    ):
        block = CodeBlock(language="bash", code="make deploy", added_at=NOW)
        note = await note_service.save_note(
            "Deploy", "ship it", code_blocks=[block], schedules=[_daily(9)],
        )

        reminder = reminder_repo.get(note.reminder_id)
        assert reminder.note_id == note.id
        assert reminder.next_fire_at == datetime(2025, 1, 13, 9, 0, tzinfo=UTC)
        payload = dispatcher.pending[reminder.notification_handle]["payload"]
        assert payload["title"] == "Deploy"
        assert payload["code_blocks"][0]["code"] == "make deploy"

    @pytest.mark.asyncio
    async def test_new_note_with_disabled_reminder(self, note_service, reminder_repo, dispatcher):
        note = await note_service.save_note("Later", "", schedules=[_daily(9)], reminder_disabled=True)
        reminder = reminder_repo.get(note.reminder_id)
        assert reminder.disabled is True
        assert reminder.next_fire_at is None
        assert dispatcher.pending == {}

    @pytest.mark.asyncio
    async def test_editing_note_refreshes_pending_payload(self, note_service, dispatcher):
        note = await note_service.save_note("Old title", "", schedules=[_daily(9)])
        await note_service.save_note("New title", "", schedules=[_daily(9)], note_id=note.id)

        assert len(dispatcher.pending) == 1
        (entry,) = dispatcher.pending.values()
        assert entry["title"] == "New title"

    @pytest.mark.asyncio
    async def test_existing_reminder_updated(self, note_service, reminder_repo):
        note = await note_service.save_note("A", "", schedules=[_daily(9)])
        await note_service.save_note(
            "A", "", schedules=[_daily(11)], note_id=note.id, countdown_seconds=5,
        )
        reminder = reminder_repo.get(note.reminder_id)
        assert reminder.next_fire_at.hour == 11
        assert reminder.countdown_seconds == 5

    @pytest.mark.asyncio
    async def test_clearing_schedules_deletes_reminder(self, note_service, reminder_repo, dispatcher):
        note = await note_service.save_note("A", "", schedules=[_daily(9)])
        saved = await note_service.save_note("A", "", schedules=[], note_id=note.id)

        assert saved.reminder_id is None
        assert reminder_repo.list_reminders() == []
        assert dispatcher.pending == {}

    @pytest.mark.asyncio
    async def test_reminder_added_to_existing_note(self, note_service, reminder_repo):
        note = await note_service.save_note("A", "")
        saved = await note_service.save_note("A", "", schedules=[_daily(9)], note_id=note.id)
        assert reminder_repo.get(saved.reminder_id) is not None

    @pytest.mark.asyncio
    async def test_unknown_note_id(self, note_service):
        assert await note_service.save_note("A", "", note_id="missing") is None


class TestDeleteNote:
    @pytest.mark.asyncio
    async def test_deletes_reminder_then_note(self, note_service, note_repo, reminder_repo, dispatcher):
        note = await note_service.save_note("A", "", schedules=[_daily(9)])
        await note_service.delete_note(note.id)

        assert note_repo.get_note(note.id) is None
        assert reminder_repo.list_reminders() == []
        assert dispatcher.pending == {}

    @pytest.mark.asyncio
    async def test_unknown_note_is_noop(self, note_service):
        await note_service.delete_note("missing")


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_marks_triggered(self, note_service, reminder_repo, clock):
        note = await note_service.save_note("A", "", schedules=[_daily(9)])
        clock.now = datetime(2025, 1, 13, 9, 0, 30, tzinfo=UTC)
        reminder = await note_service.acknowledge(note.reminder_id)
        assert reminder.last_triggered_at == clock.now
        assert reminder.next_fire_at == datetime(2025, 1, 14, 9, 0, tzinfo=UTC)


class TestContentEdits:
    @pytest.mark.asyncio
    async def test_code_block_added_reaches_pending_payload(self, note_service, dispatcher):
        note = await note_service.save_note("Deploy", "", schedules=[_daily(9)])
        block = CodeBlock(language="bash", code="make deploy", added_at=NOW)

        await note_service.add_code_block(note.id, block)

        (entry,) = dispatcher.pending.values()
        assert entry["payload"]["code_blocks"][0]["code"] == "make deploy"

    @pytest.mark.asyncio
    async def test_attachment_round_trip_refreshes_payload(self, note_service, dispatcher):
        note = await note_service.save_note("Trip", "", schedules=[_daily(9)])
        attachment = NoteAttachment(
            type=AttachmentType.IMAGE, uri="file:///ticket.png", file_name="ticket.png", added_at=NOW,
        )

        await note_service.add_attachment(note.id, attachment)
        (entry,) = dispatcher.pending.values()
        assert entry["payload"]["attachments"][0]["file_name"] == "ticket.png"

        await note_service.remove_attachment(note.id, attachment.id)
        (entry,) = dispatcher.pending.values()
        assert entry["payload"]["attachments"] == []

    @pytest.mark.asyncio
    async def test_note_without_reminder_schedules_nothing(self, note_service, dispatcher):
        note = await note_service.save_note("Idea", "")
        block = CodeBlock(language="sql", code="select 1", added_at=NOW)

        saved = await note_service.add_code_block(note.id, block)
        await note_service.remove_code_block(note.id, block.id)

        assert saved.code_blocks[0].code == "select 1"
        assert dispatcher.scheduled == []
