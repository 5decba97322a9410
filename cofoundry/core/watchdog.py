"""Check-in watchdog — one cancellable periodic timer per check-in.

Each armed check-in gets its own asyncio task that sleeps for the polling
interval and then awaits the tick callback, forever, until disarmed. The
table of handles is the single source of truth: a tick is delivered only
while the handle that scheduled it is still in the table, and the callback
receives the handle's token so it can re-check liveness after acquiring
its own lock.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[str, str], Awaitable[None]]


@dataclass
class _Handle:
    token: str
    task: asyncio.Task | None = None


class Watchdog:
    """Per-id periodic timers. Must be used from within a running event loop."""

    def __init__(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval = interval_seconds
        self._handles: dict[str, _Handle] = {}

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def arm(self, check_in_id: str, on_tick: TickCallback) -> str:
        """Start ticking for check_in_id; returns the liveness token.

        Re-arming an id that is already armed replaces its timer.
        """
        self.disarm(check_in_id)
        handle = _Handle(token=uuid.uuid4().hex)
        self._handles[check_in_id] = handle
        handle.task = asyncio.get_running_loop().create_task(
            self._run(check_in_id, handle, on_tick),
            name=f"checkin-watchdog:{check_in_id}",
        )
        logger.debug("Watchdog armed for %s every %ss", check_in_id, self._interval)
        return handle.token

    def disarm(self, check_in_id: str) -> bool:
        """Stop ticking for check_in_id. Returns False if it was not armed.

        The handle is removed synchronously, so any tick already queued for
        this id sees a dead token. When called from inside the id's own tick
        the task is left to finish that tick and then exits its loop.
        """
        handle = self._handles.pop(check_in_id, None)
        if handle is None:
            return False
        task = handle.task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.debug("Watchdog disarmed for %s", check_in_id)
        return True

    def is_armed(self, check_in_id: str, token: str | None = None) -> bool:
        """True if check_in_id is armed (and, if given, with this token)."""
        handle = self._handles.get(check_in_id)
        if handle is None:
            return False
        return token is None or handle.token == token

    def armed_ids(self) -> list[str]:
        return list(self._handles)

    async def shutdown(self) -> None:
        """Disarm every timer and wait for the tasks to wind down."""
        tasks = [h.task for h in self._handles.values() if h.task is not None]
        for check_in_id in list(self._handles):
            self.disarm(check_in_id)
        current = asyncio.current_task()
        tasks = [t for t in tasks if t is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, check_in_id: str, handle: _Handle, on_tick: TickCallback) -> None:
        while self._handles.get(check_in_id) is handle:
            await asyncio.sleep(self._interval)
            if self._handles.get(check_in_id) is not handle:
                break
            try:
                await on_tick(check_in_id, handle.token)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Watchdog tick failed for %s: %s", check_in_id, exc)
