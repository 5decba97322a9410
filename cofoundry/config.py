"""
CoFoundry Safety — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from cofoundry/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # SQLite
    DATABASE_PATH: str = "data/cofoundry.db"

    # Display timezone for check-in messages
    TIMEZONE: str = "UTC"

    # Check-in watchdog
    CHECKIN_POLL_INTERVAL_SECONDS: int = 60
    CHECKIN_GRACE_PERIOD_MINUTES: int = 15

    # SMS / email gateway for contacts without Telegram (optional)
    SMS_WEBHOOK_URL: str = ""
    SMS_WEBHOOK_TOKEN: str = ""

    # Google Maps Places API (optional — maps link in emergency alerts)
    GOOGLE_MAPS_API_KEY: str = ""

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "CHECKIN_POLL_INTERVAL_SECONDS", "CHECKIN_GRACE_PERIOD_MINUTES", mode="before",
    )
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/cofoundry.db"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        CHECKIN_POLL_INTERVAL_SECONDS=os.getenv("CHECKIN_POLL_INTERVAL_SECONDS", "60"),
        CHECKIN_GRACE_PERIOD_MINUTES=os.getenv("CHECKIN_GRACE_PERIOD_MINUTES", "15"),
        SMS_WEBHOOK_URL=os.getenv("SMS_WEBHOOK_URL", ""),
        SMS_WEBHOOK_TOKEN=os.getenv("SMS_WEBHOOK_TOKEN", ""),
        GOOGLE_MAPS_API_KEY=os.getenv("GOOGLE_MAPS_API_KEY", ""),
    )


# Imported by the bot wiring and adapter factory as:
#   from cofoundry.config import settings
settings = _load_settings()
