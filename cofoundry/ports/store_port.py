"""Check-in store port — durable full-collection load/save."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cofoundry.data.models import CheckIn


class CheckInStorePort(Protocol):
    """Abstract persistence interface used by the check-in monitor."""

    def load(self) -> list[CheckIn]: ...

    def save(self, check_ins: list[CheckIn]) -> None: ...
