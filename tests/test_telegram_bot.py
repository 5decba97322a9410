"""Tests for cofoundry.bot.telegram_bot — Telegram bot handlers.

Tests argument parsing, command handlers and authorization. Handlers run
against a real CheckInMonitor on a temp DB; Telegram itself is mocked.
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from cofoundry.bot.telegram_bot import (
    _parse_minutes,
    _parse_schedule_args,
    _parse_share_args,
    _resolve_check_in_id,
    _split_name_location,
    cmd_addcontact,
    cmd_cancelcheckin,
    cmd_checkins,
    cmd_safe,
    cmd_schedule,
    cmd_share,
    cmd_sos,
    cmd_start,
    cmd_startcheckin,
)
from cofoundry.core.check_in_monitor import CheckInMonitor
from cofoundry.data.models import CheckInStatus

from conftest import RecordingNotifier

USER_ID = 12345  # matches ALLOWED_USER_IDS in conftest


# ---------------------------------------------------------------------------
# Helpers / fixtures
# ---------------------------------------------------------------------------


def _make_update(user_id=USER_ID, first_name="Jordan"):
    """Create a mock Update with a message from an authorized user."""
    update = MagicMock()
    update.effective_user.id = user_id
    update.effective_user.first_name = first_name
    update.effective_user.full_name = f"{first_name} Lee"
    update.message.reply_text = AsyncMock()
    return update


def _make_context(args, monitor=None, notifier=None):
    context = MagicMock()
    context.args = args
    context.bot_data = {"monitor": monitor, "notifier": notifier or RecordingNotifier()}
    return context


def _reply(update) -> str:
    return update.message.reply_text.call_args.args[0]


@pytest_asyncio.fixture
async def live_monitor(check_in_db, notifier):
    """Monitor on the real clock, since handlers compute times from now."""
    m = CheckInMonitor(check_in_db, notifier, poll_interval_seconds=3600)
    await m.start()
    yield m
    await m.shutdown()


@pytest.fixture
def patched_contacts(contact_db):
    contact_db.add_contact("Dana", "+15550001", telegram_chat_id=111, user_id=USER_ID)
    with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
        yield contact_db


async def _schedule_via_bot(monitor):
    update = _make_update()
    await cmd_schedule(update, _make_context(["30", "90", "Alex", "@", "Cafe"], monitor))
    return monitor.for_user(USER_ID)[0]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_split_name_location(self):
        assert _split_name_location(["Alex", "Kim", "@", "Blue", "Bottle"]) == (
            "Alex Kim", "Blue Bottle",
        )

    def test_split_requires_both_sides(self):
        assert _split_name_location(["Alex", "Kim"]) is None
        assert _split_name_location(["@", "Cafe"]) is None
        assert _split_name_location(["Alex", "@"]) is None

    @pytest.mark.parametrize("raw, expected", [
        ("30", 30), ("0", None), ("-5", None), ("abc", None), ("10081", None), ("10080", 10080),
    ])
    def test_parse_minutes(self, raw, expected):
        assert _parse_minutes(raw) == expected

    def test_parse_schedule_args(self):
        args = ["30", "90", "Alex", "Kim", "@", "Blue", "Bottle,", "Market", "St"]
        assert _parse_schedule_args(args) == (30, 90, "Alex Kim", "Blue Bottle, Market St")

    @pytest.mark.parametrize("args", [
        [],
        ["30", "90", "Alex"],
        ["x", "90", "Alex", "@", "Cafe"],
        ["30", "0", "Alex", "@", "Cafe"],
        ["30", "90", "Alex", "Cafe", "Nero"],
    ])
    def test_parse_schedule_args_invalid(self, args):
        assert _parse_schedule_args(args) is None

    def test_parse_share_args_with_notes(self):
        args = ["15", "Alex", "@", "Cafe", "|", "wearing", "red"]
        assert _parse_share_args(args) == (15, "Alex", "Cafe", "wearing red")

    def test_parse_share_args_without_notes(self):
        assert _parse_share_args(["15", "Alex", "@", "Cafe"]) == (15, "Alex", "Cafe", "")


class TestResolveCheckInId:
    def _monitor(self, *ids):
        monitor = MagicMock()
        monitor.for_user.return_value = [MagicMock(id=i) for i in ids]
        return monitor

    def test_full_id(self):
        assert _resolve_check_in_id(self._monitor("abcdef12", "99887766"), USER_ID, "abcdef12") == "abcdef12"

    def test_unique_prefix(self):
        assert _resolve_check_in_id(self._monitor("abcdef12", "99887766"), USER_ID, "ABC") == "abcdef12"

    def test_ambiguous_prefix(self):
        assert _resolve_check_in_id(self._monitor("abc1", "abc2"), USER_ID, "abc") is None

    def test_no_match_or_blank(self):
        monitor = self._monitor("abc1")
        assert _resolve_check_in_id(monitor, USER_ID, "zzz") is None
        assert _resolve_check_in_id(monitor, USER_ID, "  ") is None


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_unauthorized_user_is_ignored(self):
        update = _make_update(user_id=99999)  # not in ALLOWED_USER_IDS
        await cmd_start(update, MagicMock())
        update.message.reply_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_authorized_user_gets_response(self):
        update = _make_update()
        await cmd_start(update, MagicMock())
        update.message.reply_text.assert_called_once()
        assert "Hi Jordan" in _reply(update)

    @pytest.mark.asyncio
    async def test_unauthorized_cannot_trigger_sos(self, live_monitor):
        update = _make_update(user_id=99999)
        await cmd_sos(update, _make_context(["abc"], live_monitor))
        update.message.reply_text.assert_not_called()


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class TestAddContact:
    @pytest.mark.asyncio
    async def test_adds_contact_with_telegram_chat(self, contact_db):
        update = _make_update()
        context = _make_context(["Noa", "+15550002", "noa@example.com", "tg:222"])

        with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
            await cmd_addcontact(update, context)

        [contact] = contact_db.list_all(user_id=USER_ID)
        assert contact.name == "Noa"
        assert contact.email == "noa@example.com"
        assert contact.telegram_chat_id == 222
        assert "Noa" in _reply(update)

    @pytest.mark.asyncio
    async def test_usage_when_missing_phone(self, contact_db):
        update = _make_update()
        with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
            await cmd_addcontact(update, _make_context(["Noa"]))
        assert _reply(update).startswith("Usage:")
        assert contact_db.list_all() == []

    @pytest.mark.asyncio
    async def test_invalid_chat_id(self, contact_db):
        update = _make_update()
        with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
            await cmd_addcontact(update, _make_context(["Noa", "+1555", "tg:abc"]))
        assert _reply(update) == "Invalid Telegram chat id."


# ---------------------------------------------------------------------------
# Check-in commands
# ---------------------------------------------------------------------------


class TestScheduleCommand:
    @pytest.mark.asyncio
    async def test_schedules_with_users_contacts(self, live_monitor, patched_contacts):
        update = _make_update()
        context = _make_context(["30", "90", "Alex", "Kim", "@", "Blue", "Bottle"], live_monitor)

        await cmd_schedule(update, context)

        [check_in] = live_monitor.for_user(USER_ID)
        assert check_in.status is CheckInStatus.SCHEDULED
        assert check_in.match_name == "Alex Kim"
        assert check_in.location == "Blue Bottle"
        assert [c.name for c in check_in.trusted_contacts] == ["Dana"]
        assert "Check-in scheduled" in _reply(update)
        assert f"/startcheckin {check_in.id[:8]}" in _reply(update)

    @pytest.mark.asyncio
    async def test_no_contacts_is_reported(self, live_monitor, contact_db):
        update = _make_update()
        with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
            await cmd_schedule(update, _make_context(["30", "90", "Alex", "@", "Cafe"], live_monitor))

        assert "trusted contact" in _reply(update)
        assert live_monitor.scheduled_check_ins == []

    @pytest.mark.asyncio
    async def test_bad_args_show_usage(self, live_monitor):
        update = _make_update()
        await cmd_schedule(update, _make_context(["soon"], live_monitor))
        assert _reply(update).startswith("Usage:")

    @pytest.mark.asyncio
    async def test_markdown_in_user_text_is_escaped(self, live_monitor, patched_contacts):
        update = _make_update()
        context = _make_context(["30", "90", "Al_ex", "@", "*Cafe*", "[HQ]"], live_monitor)

        await cmd_schedule(update, context)

        [check_in] = live_monitor.for_user(USER_ID)
        assert check_in.match_name == "Al_ex"
        reply = _reply(update)
        assert "Al\\_ex @ \\*Cafe\\* \\[HQ]" in reply
        assert update.message.reply_text.call_args.kwargs["parse_mode"] == "Markdown"

    @pytest.mark.asyncio
    async def test_transition_reply_escapes_match_name(self, live_monitor, patched_contacts):
        update = _make_update()
        await cmd_schedule(update, _make_context(["30", "90", "Al_ex", "@", "Cafe"], live_monitor))
        [check_in] = live_monitor.for_user(USER_ID)

        update = _make_update()
        await cmd_cancelcheckin(update, _make_context([check_in.id[:8]], live_monitor))

        assert "Al\\_ex @ Cafe" in _reply(update)


class TestTransitionCommands:
    @pytest.mark.asyncio
    async def test_start_then_safe_by_short_id(self, live_monitor, patched_contacts, notifier):
        check_in = await _schedule_via_bot(live_monitor)
        short_id = check_in.id[:8]

        update = _make_update()
        await cmd_startcheckin(update, _make_context([short_id], live_monitor))
        assert live_monitor.get(check_in.id).status is CheckInStatus.ACTIVE
        assert "Check-in active" in _reply(update)

        update = _make_update()
        await cmd_safe(update, _make_context([short_id], live_monitor))
        assert live_monitor.get(check_in.id).status is CheckInStatus.COMPLETED
        assert "Glad you're safe" in _reply(update)
        assert len(notifier.texts_containing("completed successfully")) == 1

    @pytest.mark.asyncio
    async def test_safe_on_scheduled_is_refused(self, live_monitor, patched_contacts):
        check_in = await _schedule_via_bot(live_monitor)

        update = _make_update()
        await cmd_safe(update, _make_context([check_in.id], live_monitor))

        assert "can't be changed right now" in _reply(update)
        assert live_monitor.get(check_in.id).status is CheckInStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_sos_alerts_contacts(self, live_monitor, patched_contacts, notifier):
        check_in = await _schedule_via_bot(live_monitor)
        await live_monitor.activate(check_in.id)

        update = _make_update()
        await cmd_sos(update, _make_context([check_in.id[:8]], live_monitor))

        assert live_monitor.get(check_in.id).status is CheckInStatus.EMERGENCY
        assert len(notifier.texts_containing("EMERGENCY")) == 1

    @pytest.mark.asyncio
    async def test_cancel(self, live_monitor, patched_contacts):
        check_in = await _schedule_via_bot(live_monitor)

        update = _make_update()
        await cmd_cancelcheckin(update, _make_context([check_in.id[:8]], live_monitor))

        assert live_monitor.get(check_in.id).status is CheckInStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_other_users_check_in_not_found(self, live_monitor, patched_contacts):
        check_in = await _schedule_via_bot(live_monitor)

        update = _make_update(user_id=54321)
        with patch("cofoundry.bot.telegram_bot.settings") as mock_settings:
            mock_settings.ALLOWED_USER_IDS = [USER_ID, 54321]
            await cmd_cancelcheckin(update, _make_context([check_in.id], live_monitor))

        assert _reply(update).startswith("Check-in not found")
        assert live_monitor.get(check_in.id).status is CheckInStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_missing_id_shows_usage(self, live_monitor):
        update = _make_update()
        await cmd_startcheckin(update, _make_context([], live_monitor))
        assert _reply(update).startswith("Usage: /startcheckin")


class TestCheckinsCommand:
    @pytest.mark.asyncio
    async def test_empty(self, live_monitor):
        update = _make_update()
        await cmd_checkins(update, _make_context([], live_monitor))
        assert "No check-ins yet" in _reply(update)

    @pytest.mark.asyncio
    async def test_lists_user_check_ins(self, live_monitor, patched_contacts):
        check_in = await _schedule_via_bot(live_monitor)
        update = _make_update()
        await cmd_checkins(update, _make_context([], live_monitor))
        assert check_in.id[:8] in _reply(update)
        assert "scheduled" in _reply(update)


# ---------------------------------------------------------------------------
# /share
# ---------------------------------------------------------------------------


class TestShareCommand:
    @pytest.mark.asyncio
    async def test_shares_with_opted_in_contacts(self, patched_contacts):
        notifier = RecordingNotifier()
        update = _make_update()

        await cmd_share(update, _make_context(["20", "Alex", "@", "Cafe"], notifier=notifier))

        assert [name for name, _ in notifier.sent] == ["Dana"]
        assert "Jordan Lee" in notifier.sent[0][1]
        assert _reply(update) == "📤 Meeting details shared with Dana."

    @pytest.mark.asyncio
    async def test_no_opted_in_contacts(self, contact_db):
        contact = contact_db.add_contact("Dana", "+1555", user_id=USER_ID)
        contact_db.set_meeting_alerts(contact.id, False)
        notifier = RecordingNotifier()
        update = _make_update()

        with patch("cofoundry.bot.telegram_bot._contact_db", return_value=contact_db):
            await cmd_share(update, _make_context(["20", "Alex", "@", "Cafe"], notifier=notifier))

        assert notifier.sent == []
        assert "No trusted contacts" in _reply(update)
