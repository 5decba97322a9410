"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
Only contacts who have started a chat with the bot have a chat id.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Bot
from telegram.error import TelegramError

from cofoundry.ports.notification_port import NotificationError

if TYPE_CHECKING:
    from cofoundry.data.models import TrustedContact

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def notify(self, contact: TrustedContact, text: str) -> None:
        if contact.telegram_chat_id is None:
            raise NotificationError(f"Contact {contact.name} has no Telegram chat")
        try:
            await self._bot.send_message(chat_id=contact.telegram_chat_id, text=text)
        except TelegramError as exc:
            raise NotificationError(f"Telegram delivery to {contact.name} failed: {exc}") from exc
