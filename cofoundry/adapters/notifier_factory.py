"""Notifier factory — routes each contact to the channel it can be reached on."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cofoundry.config import settings
from cofoundry.ports.notification_port import NotificationError, NotificationPort

if TYPE_CHECKING:
    from telegram import Bot

    from cofoundry.data.models import TrustedContact


class ChannelNotifier:
    """NotificationPort that picks Telegram when possible, else the SMS gateway."""

    def __init__(
        self,
        telegram: NotificationPort | None = None,
        sms: NotificationPort | None = None,
    ) -> None:
        self._telegram = telegram
        self._sms = sms

    async def notify(self, contact: TrustedContact, text: str) -> None:
        if contact.telegram_chat_id is not None and self._telegram is not None:
            await self._telegram.notify(contact, text)
            return
        if (contact.phone or contact.email) and self._sms is not None:
            await self._sms.notify(contact, text)
            return
        raise NotificationError(f"No delivery channel configured for {contact.name}")


def create_notifier(bot: Bot | None = None) -> ChannelNotifier:
    """Build the channel router from settings.

    Args:
        bot: Telegram bot used for contacts with a chat id. Omit to disable.
    """
    telegram = None
    if bot is not None:
        from cofoundry.adapters.telegram_notifier import TelegramNotifier

        telegram = TelegramNotifier(bot)

    sms = None
    if settings.SMS_WEBHOOK_URL:
        from cofoundry.adapters.sms_webhook_notifier import SmsWebhookNotifier

        sms = SmsWebhookNotifier(settings.SMS_WEBHOOK_URL, settings.SMS_WEBHOOK_TOKEN)

    return ChannelNotifier(telegram=telegram, sms=sms)
