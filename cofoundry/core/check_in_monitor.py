"""
CoFoundry Safety — Meeting Check-In Monitor.

Owns the lifecycle of an in-person meeting check-in:

    SCHEDULED -> ACTIVE -> COMPLETED | EMERGENCY
    SCHEDULED -> CANCELLED,  ACTIVE -> CANCELLED

Activation arms a per-check-in watchdog. Once the "I'm safe" deadline has
passed without completion, trusted contacts get a single overdue alert;
once the grace period has also elapsed, the check-in escalates to
EMERGENCY, which is terminal and disarms the watchdog.

Every transition is guarded by membership in a working set (scheduled or
active), never by the status field alone, and all working-set mutations
run under one asyncio.Lock. Contact notifications are sent after the lock
is released and never fail or roll back a transition.

This module is provider-agnostic: it depends on the CheckInStorePort,
NotificationPort and ReminderPort protocols.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Awaitable, Callable

from cofoundry.core.watchdog import Watchdog
from cofoundry.data.models import CheckIn, CheckInStatus

if TYPE_CHECKING:
    from cofoundry.data.models import TrustedContact
    from cofoundry.ports.notification_port import NotificationPort
    from cofoundry.ports.reminder_port import ReminderPort
    from cofoundry.ports.store_port import CheckInStorePort

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 60
DEFAULT_GRACE_PERIOD = timedelta(minutes=15)

Clock = Callable[[], datetime]
LocationEnricher = Callable[[str], Awaitable["str | None"]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CheckInError(Exception):
    """Base class for check-in failures surfaced to callers."""


class InvalidScheduleError(CheckInError):
    """Scheduling preconditions violated; nothing was created."""


class CheckInNotFoundError(CheckInError):
    """The id is not in the working set the operation requires."""

    def __init__(self, check_in_id: str) -> None:
        super().__init__(f"Check-in {check_in_id} not found")
        self.check_in_id = check_in_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pop(check_ins: list[CheckIn], check_in_id: str) -> CheckIn | None:
    for index, check_in in enumerate(check_ins):
        if check_in.id == check_in_id:
            return check_ins.pop(index)
    return None


def _find(check_ins: list[CheckIn], check_in_id: str) -> CheckIn | None:
    return next((c for c in check_ins if c.id == check_in_id), None)


def _history_key(check_in: CheckIn) -> datetime:
    return check_in.completed_at or check_in.activated_at or check_in.scheduled_time


def _snapshot(check_in: CheckIn) -> CheckIn:
    """Copy handed to callers and notifiers; shares no mutable state with the record."""
    return replace(
        check_in, trusted_contacts=[replace(t) for t in check_in.trusted_contacts],
    )


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------


class CheckInMonitor:
    """The check-in state machine and its timeout-escalation policy.

    Construct one per process and pass it to whatever needs it.
    """

    def __init__(
        self,
        store: CheckInStorePort,
        notifier: NotificationPort,
        reminders: ReminderPort | None = None,
        clock: Clock | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        location_enricher: LocationEnricher | None = None,
        display_timezone: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._reminders = reminders
        self._clock = clock or _utcnow
        self._grace = grace_period
        self._enrich_location = location_enricher
        self._display_tz = display_timezone or timezone.utc

        self._scheduled: list[CheckIn] = []
        self._active: list[CheckIn] = []
        self._past: list[CheckIn] = []       # newest first
        self._lock = asyncio.Lock()
        self._watchdog = Watchdog(poll_interval_seconds)

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Load persisted check-ins and re-arm watchdogs for active ones."""
        async with self._lock:
            records = self._store.load()
            self._scheduled, self._active, self._past = [], [], []
            for check_in in records:
                if check_in.status is CheckInStatus.SCHEDULED:
                    self._scheduled.append(check_in)
                elif check_in.status is CheckInStatus.ACTIVE:
                    self._active.append(check_in)
                else:
                    self._past.append(check_in)
            self._past.sort(key=_history_key, reverse=True)
            for check_in in self._active:
                self._watchdog.arm(check_in.id, self.check_status)
        logger.info(
            "Check-in monitor started: %d scheduled, %d active, %d past",
            len(self._scheduled), len(self._active), len(self._past),
        )

    async def shutdown(self) -> None:
        """Stop every watchdog. Check-in state is left as persisted."""
        await self._watchdog.shutdown()
        logger.info("Check-in monitor stopped")

    # -- read-only views ----------------------------------------------------

    @property
    def scheduled_check_ins(self) -> list[CheckIn]:
        return [_snapshot(c) for c in self._scheduled]

    @property
    def active_check_ins(self) -> list[CheckIn]:
        return [_snapshot(c) for c in self._active]

    @property
    def past_check_ins(self) -> list[CheckIn]:
        return [_snapshot(c) for c in self._past]

    @property
    def has_active_check_in(self) -> bool:
        return bool(self._active)

    def is_monitored(self, check_in_id: str) -> bool:
        """True while the watchdog for check_in_id is armed."""
        return self._watchdog.is_armed(check_in_id)

    def get(self, check_in_id: str) -> CheckIn | None:
        for group in (self._scheduled, self._active, self._past):
            found = _find(group, check_in_id)
            if found is not None:
                return _snapshot(found)
        return None

    def for_user(self, user_id: int) -> list[CheckIn]:
        """All of a user's check-ins: scheduled, then active, then history."""
        return [
            _snapshot(c)
            for c in (*self._scheduled, *self._active, *self._past)
            if c.user_id == user_id
        ]

    # -- transitions --------------------------------------------------------

    async def schedule(
        self,
        match_id: str,
        match_name: str,
        location: str,
        scheduled_time: datetime,
        check_in_time: datetime,
        trusted_contacts: list[TrustedContact],
        user_id: int | None = None,
    ) -> CheckIn:
        """Create a SCHEDULED check-in and register its reminder.

        Raises:
            InvalidScheduleError: scheduled_time is not in the future, the
                deadline is not after it, a time is naive, or no contacts
                were given.
        """
        logger.info("Scheduling check-in for meeting with: %s", match_name)
        if scheduled_time.tzinfo is None or check_in_time.tzinfo is None:
            raise InvalidScheduleError("Meeting times must be timezone-aware")
        if scheduled_time <= self._clock():
            raise InvalidScheduleError("Meeting time must be in the future")
        if check_in_time <= scheduled_time:
            raise InvalidScheduleError("Check-in deadline must be after the meeting time")
        if not trusted_contacts:
            raise InvalidScheduleError("At least one trusted contact is required")

        check_in = CheckIn(
            id=uuid.uuid4().hex,
            match_id=match_id,
            match_name=match_name,
            location=location,
            scheduled_time=scheduled_time,
            check_in_time=check_in_time,
            trusted_contacts=[replace(t) for t in trusted_contacts],
            status=CheckInStatus.SCHEDULED,
            user_id=user_id,
        )

        async with self._lock:
            self._scheduled.append(check_in)
            self._persist()
            snapshot = _snapshot(check_in)

        if self._reminders is not None:
            try:
                self._reminders.schedule_reminder(check_in.id, scheduled_time)
            except Exception as exc:
                logger.error("Failed to schedule reminder for %s: %s", check_in.id, exc)

        logger.info("Check-in scheduled: %s", check_in.id)
        return snapshot

    async def activate(self, check_in_id: str) -> CheckIn:
        """SCHEDULED -> ACTIVE; arms the watchdog and tells the contacts."""
        async with self._lock:
            check_in = _pop(self._scheduled, check_in_id)
            if check_in is None:
                raise CheckInNotFoundError(check_in_id)
            check_in.status = CheckInStatus.ACTIVE
            check_in.activated_at = self._clock()
            self._active.append(check_in)
            self._persist()
            self._watchdog.arm(check_in_id, self.check_status)
            snapshot = _snapshot(check_in)

        self._cancel_reminder(check_in_id)
        logger.info("Check-in started: %s", check_in_id)
        await self._broadcast(
            snapshot, f"Check-in started for meeting with {snapshot.match_name}",
        )
        return snapshot

    async def complete(self, check_in_id: str) -> CheckIn:
        """ACTIVE -> COMPLETED; the user confirmed they are safe."""
        async with self._lock:
            check_in = _pop(self._active, check_in_id)
            if check_in is None:
                raise CheckInNotFoundError(check_in_id)
            self._watchdog.disarm(check_in_id)
            check_in.status = CheckInStatus.COMPLETED
            check_in.completed_at = self._clock()
            self._past.insert(0, check_in)
            self._persist()
            snapshot = _snapshot(check_in)

        logger.info("Check-in completed: %s", check_in_id)
        await self._broadcast(
            snapshot,
            f"✅ Check-in completed successfully for meeting with {snapshot.match_name}",
        )
        return snapshot

    async def cancel(self, check_in_id: str) -> CheckIn:
        """SCHEDULED or ACTIVE -> CANCELLED. Contacts are not notified."""
        async with self._lock:
            check_in = _pop(self._scheduled, check_in_id)
            was_active = False
            if check_in is None:
                check_in = _pop(self._active, check_in_id)
                was_active = check_in is not None
            if check_in is None:
                raise CheckInNotFoundError(check_in_id)
            if was_active:
                self._watchdog.disarm(check_in_id)
            check_in.status = CheckInStatus.CANCELLED
            self._past.insert(0, check_in)
            self._persist()
            snapshot = _snapshot(check_in)

        if not was_active:
            self._cancel_reminder(check_in_id)
        logger.info(
            "%s check-in cancelled: %s", "Active" if was_active else "Scheduled", check_in_id,
        )
        return snapshot

    async def trigger_emergency(self, check_in_id: str) -> CheckIn:
        """ACTIVE -> EMERGENCY and alert every contact. EMERGENCY is terminal."""
        async with self._lock:
            check_in = _find(self._active, check_in_id)
            if check_in is None:
                raise CheckInNotFoundError(check_in_id)
            self._escalate_locked(check_in)
            snapshot = _snapshot(check_in)

        await self._send_emergency_alerts(snapshot)
        return snapshot

    # -- watchdog -----------------------------------------------------------

    async def check_status(self, check_in_id: str, token: str | None = None) -> None:
        """Watchdog tick: overdue alert after the deadline, emergency after grace.

        A tick for a disarmed id (or with a stale token) is dropped.
        """
        send_overdue = False
        escalate = False
        async with self._lock:
            if not self._watchdog.is_armed(check_in_id, token):
                return
            check_in = _find(self._active, check_in_id)
            if check_in is None:
                self._watchdog.disarm(check_in_id)
                return

            now = self._clock()
            if now <= check_in.check_in_time:
                return

            if check_in.overdue_alerted_at is None:
                check_in.overdue_alerted_at = now
                send_overdue = True
                logger.warning("Check-in overdue: %s", check_in_id)

            if now - check_in.check_in_time >= self._grace:
                self._escalate_locked(check_in)
                escalate = True
            elif send_overdue:
                self._persist()
            snapshot = _snapshot(check_in)

        if send_overdue:
            await self._broadcast(
                snapshot, f"⚠️ Check-in overdue for meeting with {snapshot.match_name}",
            )
        if escalate:
            await self._send_emergency_alerts(snapshot)

    # -- internals ----------------------------------------------------------

    def _escalate_locked(self, check_in: CheckIn) -> None:
        """Move an active check-in to EMERGENCY. Caller holds the lock."""
        self._active.remove(check_in)
        self._watchdog.disarm(check_in.id)
        check_in.status = CheckInStatus.EMERGENCY
        self._past.insert(0, check_in)
        self._persist()
        logger.warning("Emergency triggered for check-in: %s", check_in.id)

    def _persist(self) -> None:
        """Write the full collection. Caller holds the lock; failures are logged."""
        try:
            self._store.save([*self._scheduled, *self._active, *self._past])
        except Exception as exc:
            logger.error("Failed to persist check-ins: %s", exc)

    def _cancel_reminder(self, check_in_id: str) -> None:
        if self._reminders is None:
            return
        try:
            self._reminders.cancel_reminder(check_in_id)
        except Exception as exc:
            logger.error("Failed to cancel reminder for %s: %s", check_in_id, exc)

    async def _broadcast(self, check_in: CheckIn, text: str) -> int:
        """Send text to every trusted contact; returns how many succeeded."""
        delivered = 0
        for contact in check_in.trusted_contacts:
            try:
                await self._notifier.notify(contact, text)
                delivered += 1
                logger.info("Notified trusted contact %s for %s", contact.name, check_in.id)
            except Exception as exc:
                logger.error(
                    "Failed to notify %s for check-in %s: %s", contact.name, check_in.id, exc,
                )
        return delivered

    async def _send_emergency_alerts(self, check_in: CheckIn) -> int:
        maps_url = None
        if self._enrich_location is not None:
            try:
                maps_url = await self._enrich_location(check_in.location)
            except Exception as exc:
                logger.warning("Location enrichment failed for %s: %s", check_in.id, exc)
        for contact in check_in.trusted_contacts:
            logger.warning(
                "EMERGENCY: notifying %s about meeting with %s",
                contact.name, check_in.match_name,
            )
        return await self._broadcast(
            check_in, format_emergency_message(check_in, maps_url, self._display_tz),
        )


def format_emergency_message(
    check_in: CheckIn,
    maps_url: str | None = None,
    display_tz: tzinfo | None = None,
) -> str:
    """Human-readable emergency alert with meeting context."""
    tz = display_tz or timezone.utc
    deadline = check_in.check_in_time.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")
    lines = [
        "🚨 EMERGENCY: no safety check-in after a co-founder meeting.",
        f"Meeting with: {check_in.match_name}",
        f"Location: {check_in.location}",
        f"Check-in was due: {deadline}",
    ]
    if maps_url:
        lines.append(f"Map: {maps_url}")
    lines.append("Please try to reach them now and contact local emergency services if needed.")
    return "\n".join(lines)
