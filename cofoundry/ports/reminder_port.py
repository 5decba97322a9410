"""Reminder port — best-effort future callbacks keyed by check-in id."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ReminderPort(Protocol):
    """Abstract reminder scheduler used by the check-in monitor."""

    def schedule_reminder(self, check_in_id: str, fire_at: datetime) -> None: ...

    def cancel_reminder(self, check_in_id: str) -> None: ...
