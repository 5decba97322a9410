"""Shared test fixtures and configuration.

Sets up fake environment variables so cofoundry.config doesn't sys.exit(),
and provides common fixtures: temp DBs, a controllable clock, a notifier
that records every message, and a ready-to-use check-in monitor.
"""

import os

# Patch env vars BEFORE any cofoundry imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "")
os.environ.setdefault("SMS_WEBHOOK_URL", "")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """NotificationPort that records (contact name, text) pairs.

    Contacts named in `failing` raise instead of being recorded.
    """

    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = failing or set()

    async def notify(self, contact, text: str) -> None:
        if contact.name in self.failing:
            raise RuntimeError(f"delivery to {contact.name} failed")
        self.sent.append((contact.name, text))

    def texts_containing(self, fragment: str) -> list[tuple[str, str]]:
        return [(name, text) for name, text in self.sent if fragment in text]


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_cofoundry.db")


@pytest.fixture
def check_in_db(tmp_db_path):
    """Return a CheckInDB instance backed by a temp file."""
    from cofoundry.data.db import CheckInDB
    return CheckInDB(db_path=tmp_db_path)


@pytest.fixture
def contact_db(tmp_path):
    """Return a TrustedContactDB instance backed by a temp file."""
    from cofoundry.data.db import TrustedContactDB
    return TrustedContactDB(db_path=str(tmp_path / "test_contacts.db"))


@pytest.fixture
def preset_db(tmp_path):
    """Return a FilterPresetDB instance backed by a temp file."""
    from cofoundry.data.db import FilterPresetDB
    return FilterPresetDB(db_path=str(tmp_path / "test_presets.db"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def contacts():
    from cofoundry.data.models import TrustedContact
    return [
        TrustedContact(id=1, name="Dana", phone="+15550001", telegram_chat_id=111),
        TrustedContact(id=2, name="Noa", phone="+15550002", email="noa@example.com"),
    ]


@pytest_asyncio.fixture
async def monitor(check_in_db, notifier, clock):
    """A started CheckInMonitor on a temp DB, with a fake clock.

    The watchdog interval is long so real ticks never fire during a test;
    tests drive ticks by calling check_status() directly.
    """
    from cofoundry.core.check_in_monitor import CheckInMonitor

    m = CheckInMonitor(
        store=check_in_db,
        notifier=notifier,
        clock=clock,
        poll_interval_seconds=3600,
        grace_period=timedelta(minutes=15),
    )
    await m.start()
    yield m
    await m.shutdown()
