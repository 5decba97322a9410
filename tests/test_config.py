"""Tests for cofoundry.config — settings parsing and validation."""

import pytest
from pydantic import ValidationError

from cofoundry.config import Settings, _load_settings


class TestSettings:
    def test_user_ids_from_comma_string(self):
        s = Settings(TELEGRAM_BOT_TOKEN="t", ALLOWED_USER_IDS=" 1, 22 ,333,")
        assert s.ALLOWED_USER_IDS == [1, 22, 333]

    def test_empty_user_ids(self):
        assert Settings(TELEGRAM_BOT_TOKEN="t", ALLOWED_USER_IDS="").ALLOWED_USER_IDS == []

    def test_watchdog_defaults(self):
        s = Settings(TELEGRAM_BOT_TOKEN="t")
        assert s.CHECKIN_POLL_INTERVAL_SECONDS == 60
        assert s.CHECKIN_GRACE_PERIOD_MINUTES == 15

    @pytest.mark.parametrize("value", ["0", "-1", "soon"])
    def test_grace_period_must_be_positive_int(self, value):
        with pytest.raises(ValidationError):
            Settings(TELEGRAM_BOT_TOKEN="t", CHECKIN_GRACE_PERIOD_MINUTES=value)


class TestLoadSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("CHECKIN_POLL_INTERVAL_SECONDS", "30")
        s = _load_settings()
        assert s.TELEGRAM_BOT_TOKEN == "123:abc"
        assert s.CHECKIN_POLL_INTERVAL_SECONDS == 30

    @pytest.mark.parametrize("token", ["", "your-telegram-bot-token"])
    def test_missing_token_exits(self, monkeypatch, token):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", token)
        with pytest.raises(SystemExit):
            _load_settings()
