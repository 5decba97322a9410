"""Share meeting details — a one-shot safety notice to trusted contacts.

Unlike a check-in there is no state machine here: the details go out once
to every contact who opted in to meeting alerts, and delivery failures are
logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cofoundry.data.models import TrustedContact
    from cofoundry.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


@dataclass
class MeetingShareConfirmation:
    """Who actually received the meeting details."""

    shared_with: list[str]
    meeting_time: datetime


def eligible_contacts(contacts: list[TrustedContact]) -> list[TrustedContact]:
    """Contacts that opted in to meeting alerts."""
    return [c for c in contacts if c.receive_meeting_alerts]


def can_share(match_name: str | None, location: str, contacts: list[TrustedContact]) -> bool:
    return bool(match_name) and bool(location.strip()) and bool(contacts)


def format_share_message(
    sender_name: str,
    match_name: str,
    meeting_time: datetime,
    location: str,
    notes: str = "",
    display_tz: tzinfo | None = None,
) -> str:
    when = meeting_time.astimezone(display_tz or timezone.utc).strftime("%b %d, %Y %H:%M %Z")
    lines = [
        "Safety Alert from CoFoundry:",
        f"{sender_name or 'A user'} has shared their meeting details with you.",
        "",
        f"Meeting Time: {when}",
        f"Meeting With: {match_name}",
        f"Location: {location}",
    ]
    if notes.strip():
        lines.append(f"Notes: {notes.strip()}")
    lines.append("")
    lines.append("This is an automated safety notification for a co-founder meeting.")
    return "\n".join(lines)


async def share_meeting(
    notifier: NotificationPort,
    sender_name: str,
    match_name: str,
    meeting_time: datetime,
    location: str,
    contacts: list[TrustedContact],
    notes: str = "",
    display_tz: tzinfo | None = None,
) -> MeetingShareConfirmation:
    """Send meeting details to every opted-in contact.

    Raises:
        ValueError: match name, location or opted-in contacts are missing.
    """
    recipients = eligible_contacts(contacts)
    if not can_share(match_name, location, recipients):
        raise ValueError("A match, a location and at least one opted-in contact are required")

    message = format_share_message(
        sender_name, match_name, meeting_time, location, notes, display_tz,
    )
    shared_with: list[str] = []
    for contact in recipients:
        try:
            await notifier.notify(contact, message)
            shared_with.append(contact.name)
        except Exception as exc:
            logger.error("Failed to share meeting details with %s: %s", contact.name, exc)

    logger.info(
        "Meeting details shared with %d of %d contacts", len(shared_with), len(recipients),
    )
    return MeetingShareConfirmation(shared_with=shared_with, meeting_time=meeting_time)
