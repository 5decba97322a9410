"""SMS/email gateway adapter — implements NotificationPort over HTTP.

Posts each message as JSON to a configured gateway (an SMS provider or a
small relay service) that fans it out to the contact's phone and email.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from cofoundry.ports.notification_port import NotificationError

if TYPE_CHECKING:
    from cofoundry.data.models import TrustedContact

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10


class SmsWebhookNotifier:
    """HTTP gateway implementation of NotificationPort."""

    def __init__(self, url: str, token: str = "") -> None:
        if not url:
            raise ValueError("SMS webhook URL is required")
        self._url = url
        self._token = token

    async def notify(self, contact: TrustedContact, text: str) -> None:
        if not contact.phone and not contact.email:
            raise NotificationError(f"Contact {contact.name} has no phone or email")

        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {
            "to": contact.phone or None,
            "email": contact.email,
            "name": contact.name,
            "message": text,
        }
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"SMS gateway delivery to {contact.name} failed: {exc}") from exc
        logger.debug("SMS gateway accepted message for %s", contact.name)
