"""
CoFoundry Safety — Data Models.

Check-ins and trusted contacts persist in SQLite across restarts. A check-in
is never deleted: completed, cancelled and emergency records stay as history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class CheckInStatus(str, Enum):
    """Lifecycle state of a meeting check-in."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EMERGENCY = "emergency"

    @property
    def is_terminal(self) -> bool:
        return self in (
            CheckInStatus.COMPLETED,
            CheckInStatus.CANCELLED,
            CheckInStatus.EMERGENCY,
        )


@dataclass
class TrustedContact:
    """A person who receives safety notifications for a user's meetings.

    Contacts are referenced by check-ins, not owned: a check-in keeps a
    snapshot of the contacts chosen when it was scheduled.
    """

    id: int
    name: str
    phone: str = ""
    email: str | None = None
    telegram_chat_id: int | None = None
    receive_meeting_alerts: bool = True
    user_id: int | None = None

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "telegram_chat_id": self.telegram_chat_id,
            "receive_meeting_alerts": self.receive_meeting_alerts,
            "user_id": self.user_id,
        }

    @classmethod
    def from_record(cls, record: dict) -> TrustedContact:
        return cls(
            id=record["id"],
            name=record["name"],
            phone=record.get("phone") or "",
            email=record.get("email"),
            telegram_chat_id=record.get("telegram_chat_id"),
            receive_meeting_alerts=bool(record.get("receive_meeting_alerts", True)),
            user_id=record.get("user_id"),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class CheckIn:
    """One scheduled, active or finished meeting check-in.

    Invariant: check_in_time (the deadline) is strictly after scheduled_time.
    activated_at is set exactly when the check-in has left SCHEDULED by way
    of activation.
    """

    id: str
    match_id: str
    match_name: str                   # the person being met
    location: str
    scheduled_time: datetime
    check_in_time: datetime           # "I'm safe" deadline
    trusted_contacts: list[TrustedContact] = field(default_factory=list)
    status: CheckInStatus = CheckInStatus.SCHEDULED
    activated_at: datetime | None = None
    completed_at: datetime | None = None
    overdue_alerted_at: datetime | None = None
    user_id: int | None = None        # owner's Telegram chat

    def to_record(self) -> dict:
        """Flatten to a JSON-safe dict (ISO-8601 timestamps, status as string)."""
        return {
            "id": self.id,
            "match_id": self.match_id,
            "match_name": self.match_name,
            "location": self.location,
            "scheduled_time": _iso(self.scheduled_time),
            "check_in_time": _iso(self.check_in_time),
            "trusted_contacts": [c.to_record() for c in self.trusted_contacts],
            "status": self.status.value,
            "activated_at": _iso(self.activated_at),
            "completed_at": _iso(self.completed_at),
            "overdue_alerted_at": _iso(self.overdue_alerted_at),
            "user_id": self.user_id,
        }

    @classmethod
    def from_record(cls, record: dict) -> CheckIn:
        return cls(
            id=record["id"],
            match_id=record.get("match_id", ""),
            match_name=record["match_name"],
            location=record["location"],
            scheduled_time=datetime.fromisoformat(record["scheduled_time"]),
            check_in_time=datetime.fromisoformat(record["check_in_time"]),
            trusted_contacts=[
                TrustedContact.from_record(c) for c in record.get("trusted_contacts", [])
            ],
            status=CheckInStatus(record["status"]),
            activated_at=_parse_iso(record.get("activated_at")),
            completed_at=_parse_iso(record.get("completed_at")),
            overdue_alerted_at=_parse_iso(record.get("overdue_alerted_at")),
            user_id=record.get("user_id"),
        )


@dataclass
class CandidateProfile:
    """The slice of a user profile the discovery filters read.

    Multi-valued attributes are lists; single-valued ones are plain strings
    (None when the user never filled them in).
    """

    id: str
    full_name: str = ""
    age: int | None = None
    gender: str | None = None
    height_inches: int | None = None
    years_experience: int | None = None
    is_verified: bool = False
    currently_funded: bool = False
    photos: list[str] = field(default_factory=list)
    joined_at: datetime | None = None
    last_active: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    skills: list[str] = field(default_factory=list)
    skills_sought: list[str] = field(default_factory=list)
    industries: list[str] = field(default_factory=list)
    role_seeking_types: list[str] = field(default_factory=list)
    startup_stage: str | None = None
    time_commitment: str | None = None
    equity_expectation: str | None = None
    funding_experience: str | None = None
    investment_capacity: str | None = None
    location_preference: str | None = None
    education_level: str | None = None
