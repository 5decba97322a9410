"""Reminder adapter — implements ReminderPort on the Telegram JobQueue.

When a reminder fires it looks the check-in up through the monitor stored
in bot_data and nudges the owner to start it, if it is still scheduled.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from telegram.ext import ContextTypes, JobQueue

from cofoundry.data.models import CheckInStatus

if TYPE_CHECKING:
    from cofoundry.core.check_in_monitor import CheckInMonitor

logger = logging.getLogger(__name__)

_JOB_PREFIX = "checkin-reminder:"


def reminder_job_name(check_in_id: str) -> str:
    return f"{_JOB_PREFIX}{check_in_id}"


async def _fire_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    check_in_id = context.job.data
    monitor: CheckInMonitor | None = context.bot_data.get("monitor")
    if monitor is None:
        logger.warning("Reminder for %s fired before the monitor was ready", check_in_id)
        return

    check_in = monitor.get(check_in_id)
    if check_in is None or check_in.status is not CheckInStatus.SCHEDULED:
        return
    if check_in.user_id is None:
        logger.info("Reminder for %s has no owner chat", check_in_id)
        return

    await context.bot.send_message(
        chat_id=check_in.user_id,
        text=(
            f"⏰ Your meeting with {check_in.match_name} is starting.\n"
            f"Start your safety check-in: /startcheckin {check_in.id}"
        ),
    )
    logger.info("Reminder sent for check-in %s", check_in_id)


class JobQueueReminders:
    """python-telegram-bot JobQueue implementation of ReminderPort."""

    def __init__(self, job_queue: JobQueue) -> None:
        self._job_queue = job_queue

    def schedule_reminder(self, check_in_id: str, fire_at: datetime) -> None:
        self.cancel_reminder(check_in_id)
        self._job_queue.run_once(
            _fire_reminder,
            when=fire_at,
            data=check_in_id,
            name=reminder_job_name(check_in_id),
        )
        logger.debug("Reminder for %s scheduled at %s", check_in_id, fire_at.isoformat())

    def cancel_reminder(self, check_in_id: str) -> None:
        for job in self._job_queue.get_jobs_by_name(reminder_job_name(check_in_id)):
            job.schedule_removal()
