"""Tests for cofoundry.core.meeting_share — one-shot meeting details."""

import pytest

from cofoundry.core.meeting_share import (
    can_share,
    eligible_contacts,
    format_share_message,
    share_meeting,
)
from cofoundry.data.models import TrustedContact

from conftest import NOW, RecordingNotifier


@pytest.fixture
def share_contacts():
    return [
        TrustedContact(id=1, name="Dana", telegram_chat_id=111),
        TrustedContact(id=2, name="Noa", phone="+15550002"),
        TrustedContact(id=3, name="Sam", phone="+15550003", receive_meeting_alerts=False),
    ]


def test_eligible_contacts_filters_opt_outs(share_contacts):
    assert [c.name for c in eligible_contacts(share_contacts)] == ["Dana", "Noa"]


@pytest.mark.parametrize("match_name, location, has_contacts, expected", [
    ("Alex", "Cafe", True, True),
    ("", "Cafe", True, False),
    (None, "Cafe", True, False),
    ("Alex", "   ", True, False),
    ("Alex", "Cafe", False, False),
])
def test_can_share(share_contacts, match_name, location, has_contacts, expected):
    contacts = share_contacts if has_contacts else []
    assert can_share(match_name, location, contacts) is expected


def test_format_share_message():
    text = format_share_message("Jordan", "Alex", NOW, "Cafe Nero", notes="  wearing red ")
    assert text.startswith("Safety Alert from CoFoundry:")
    assert "Jordan has shared their meeting details with you." in text
    assert "Meeting Time: Mar 02, 2026 18:00 UTC" in text
    assert "Meeting With: Alex" in text
    assert "Location: Cafe Nero" in text
    assert "Notes: wearing red" in text


def test_format_share_message_without_notes_or_sender():
    text = format_share_message("", "Alex", NOW, "Cafe")
    assert "A user has shared" in text
    assert "Notes:" not in text


class TestShareMeeting:
    @pytest.mark.asyncio
    async def test_sends_to_opted_in_contacts(self, share_contacts):
        notifier = RecordingNotifier()

        confirmation = await share_meeting(
            notifier, "Jordan", "Alex", NOW, "Cafe", share_contacts,
        )

        assert confirmation.shared_with == ["Dana", "Noa"]
        assert confirmation.meeting_time == NOW
        assert [name for name, _ in notifier.sent] == ["Dana", "Noa"]

    @pytest.mark.asyncio
    async def test_delivery_failure_is_skipped(self, share_contacts):
        notifier = RecordingNotifier(failing={"Dana"})

        confirmation = await share_meeting(
            notifier, "Jordan", "Alex", NOW, "Cafe", share_contacts,
        )

        assert confirmation.shared_with == ["Noa"]

    @pytest.mark.asyncio
    async def test_no_opted_in_contacts_raises(self, share_contacts):
        with pytest.raises(ValueError):
            await share_meeting(
                RecordingNotifier(), "Jordan", "Alex", NOW, "Cafe", share_contacts[2:],
            )

    @pytest.mark.asyncio
    async def test_missing_location_raises(self, share_contacts):
        notifier = RecordingNotifier()
        with pytest.raises(ValueError):
            await share_meeting(notifier, "Jordan", "Alex", NOW, "", share_contacts)
        assert notifier.sent == []
