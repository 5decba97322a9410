"""Notification port — abstract interface for reaching trusted contacts.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cofoundry.data.models import TrustedContact


class NotificationError(Exception):
    """Raised when a provider cannot deliver a message to a contact."""


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def notify(self, contact: TrustedContact, text: str) -> None: ...
