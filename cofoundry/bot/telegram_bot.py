"""
CoFoundry Safety — Telegram Bot.

Telegram is the operator surface for meeting safety: users register trusted
contacts, schedule a check-in before meeting a potential co-founder, start
it when the meeting begins and confirm they are safe afterwards. If they
don't, the check-in monitor escalates to their contacts.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes
from telegram.helpers import escape_markdown

from cofoundry.config import settings
from cofoundry.core.check_in_monitor import CheckInError, CheckInMonitor
from cofoundry.core.meeting_share import share_meeting

if TYPE_CHECKING:
    from cofoundry.data.models import CheckIn
    from cofoundry.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_MAX_LEAD_MINUTES = 7 * 24 * 60
_SHORT_ID = 8


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Parsing and formatting helpers
# ---------------------------------------------------------------------------


def _split_name_location(words: list[str]) -> tuple[str, str] | None:
    """Split "Alex Kim @ Blue Bottle, Market St" into (name, location)."""
    text = " ".join(words)
    if "@" not in text:
        return None
    name, _, location = text.partition("@")
    name, location = name.strip(), location.strip()
    if not name or not location:
        return None
    return name, location


def _parse_minutes(raw: str) -> int | None:
    try:
        value = int(raw)
    except ValueError:
        return None
    if not 0 < value <= _MAX_LEAD_MINUTES:
        return None
    return value


def _parse_schedule_args(args: list[str]) -> tuple[int, int, str, str] | None:
    """Parse `/schedule <in-minutes> <check-in-after-minutes> <name> @ <location>`.

    Returns (minutes_until_meeting, minutes_after_meeting_for_check_in,
    name, location) or None if malformed.
    """
    if len(args) < 4:
        return None
    starts_in = _parse_minutes(args[0])
    check_in_after = _parse_minutes(args[1])
    if starts_in is None or check_in_after is None:
        return None
    split = _split_name_location(args[2:])
    if split is None:
        return None
    return starts_in, check_in_after, split[0], split[1]


def _parse_share_args(args: list[str]) -> tuple[int, str, str, str] | None:
    """Parse `/share <in-minutes> <name> @ <location> [| notes]`."""
    if len(args) < 3:
        return None
    starts_in = _parse_minutes(args[0])
    if starts_in is None:
        return None
    text, _, notes = " ".join(args[1:]).partition("|")
    split = _split_name_location(text.split())
    if split is None:
        return None
    return starts_in, split[0], split[1], notes.strip()


def _display_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def _format_check_in(check_in: CheckIn) -> str:
    tz = _display_tz()
    meeting = check_in.scheduled_time.astimezone(tz).strftime("%a %H:%M")
    deadline = check_in.check_in_time.astimezone(tz).strftime("%a %H:%M")
    return (
        f"`{check_in.id[:_SHORT_ID]}` {check_in.status.value} — "
        f"{escape_markdown(check_in.match_name)} @ {escape_markdown(check_in.location)} "
        f"(meet {meeting}, check in by {deadline})"
    )


def _resolve_check_in_id(
    monitor: CheckInMonitor, user_id: int, raw: str,
) -> str | None:
    """Resolve a full or short (prefix) id among the user's own check-ins."""
    raw = raw.strip().lower()
    if not raw:
        return None
    matches = [c.id for c in monitor.for_user(user_id) if c.id.startswith(raw)]
    if len(matches) != 1:
        return None
    return matches[0]


def _monitor(context: ContextTypes.DEFAULT_TYPE) -> CheckInMonitor:
    return context.bot_data["monitor"]


def _contact_db():
    from cofoundry.data.db import TrustedContactDB

    return TrustedContactDB()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


_HELP_TEXT = (
    "*CoFoundry meeting safety*\n\n"
    "/addcontact <name> <phone> [email] [tg:<chat\\_id>] — add a trusted contact\n"
    "/contacts — list trusted contacts\n"
    "/alerts <contact\\_id> on|off — meeting alerts for a contact\n"
    "/schedule <in-min> <check-in-after-min> <name> @ <place> — plan a check-in\n"
    "/checkins — your check-ins\n"
    "/startcheckin <id> — meeting started\n"
    "/safe <id> — I'm safe\n"
    "/cancelcheckin <id> — cancel a check-in\n"
    "/sos <id> — alert my contacts now\n"
    "/share <in-min> <name> @ <place> [| notes] — share meeting details"
)


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — greet and show the command list."""
    name = escape_markdown(update.effective_user.first_name or "there")
    await update.message.reply_text(f"Hi {name}!\n\n{_HELP_TEXT}", parse_mode="Markdown")


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(_HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def cmd_addcontact(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addcontact <name> <phone> [email] [tg:<chat\\_id>]."""
    args = list(context.args or [])
    chat_id = None
    for arg in list(args):
        if arg.lower().startswith("tg:"):
            try:
                chat_id = int(arg[3:])
            except ValueError:
                await update.message.reply_text("Invalid Telegram chat id.")
                return
            args.remove(arg)

    if len(args) < 2:
        await update.message.reply_text(
            "Usage: /addcontact <name> <phone> [email] [tg:<chat\\_id>]"
        )
        return

    name, phone = args[0], args[1]
    email = args[2] if len(args) > 2 else None
    try:
        contact = _contact_db().add_contact(
            name, phone, email=email, telegram_chat_id=chat_id,
            user_id=update.effective_user.id,
        )
    except Exception as exc:
        logger.error("/addcontact error: %s", exc)
        await update.message.reply_text("Couldn't save the contact. Please try again.")
        return
    await update.message.reply_text(
        f"✅ Trusted contact *{escape_markdown(contact.name)}* added.", parse_mode="Markdown",
    )


@authorized_only
async def cmd_contacts(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /contacts — list the user's trusted contacts."""
    try:
        contacts = _contact_db().list_all(user_id=update.effective_user.id)
    except Exception as exc:
        logger.error("/contacts error: %s", exc)
        await update.message.reply_text("Couldn't load contacts. Please try again.")
        return

    if not contacts:
        await update.message.reply_text("No trusted contacts yet. Use /addcontact.")
        return

    lines = ["*Trusted contacts:*\n"]
    for c in contacts:
        alerts = "alerts on" if c.receive_meeting_alerts else "alerts off"
        reach = escape_markdown(c.phone or c.email or "Telegram")
        lines.append(f"`{c.id}` — {escape_markdown(c.name)} ({reach}, {alerts})")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_alerts(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alerts <contact_id> on|off."""
    args = context.args or []
    if len(args) != 2 or args[1].lower() not in ("on", "off"):
        await update.message.reply_text("Usage: /alerts <contact_id> on|off")
        return
    try:
        contact_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid contact ID. Use /contacts to see IDs.")
        return

    db = _contact_db()
    contact = db.get_contact(contact_id)
    if contact is None or contact.user_id != update.effective_user.id:
        await update.message.reply_text("Contact not found. Use /contacts to see IDs.")
        return
    enabled = args[1].lower() == "on"
    db.set_meeting_alerts(contact_id, enabled)
    await update.message.reply_text(
        f"Meeting alerts for {contact.name} turned {'on' if enabled else 'off'}."
    )


@authorized_only
async def cmd_schedule(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /schedule <in-min> <check-in-after-min> <name> @ <location>."""
    parsed = _parse_schedule_args(context.args or [])
    if parsed is None:
        await update.message.reply_text(
            "Usage: /schedule <minutes until meeting> <check in after minutes> <name> @ <place>\n"
            "Example: /schedule 30 90 Alex Kim @ Blue Bottle, Market St"
        )
        return

    starts_in, check_in_after, name, location = parsed
    user_id = update.effective_user.id
    contacts = _contact_db().list_all(user_id=user_id)
    now = datetime.now(timezone.utc)
    meeting_time = now + timedelta(minutes=starts_in)
    deadline = meeting_time + timedelta(minutes=check_in_after)

    try:
        check_in = await _monitor(context).schedule(
            match_id=name.lower(),
            match_name=name,
            location=location,
            scheduled_time=meeting_time,
            check_in_time=deadline,
            trusted_contacts=contacts,
            user_id=user_id,
        )
    except CheckInError as exc:
        await update.message.reply_text(f"Couldn't schedule the check-in: {exc}")
        return
    except Exception as exc:
        logger.error("/schedule error: %s", exc)
        await update.message.reply_text("Sorry, something went wrong. Please try again.")
        return

    await update.message.reply_text(
        "🗓 Check-in scheduled.\n"
        f"{_format_check_in(check_in)}\n\n"
        f"When the meeting starts: /startcheckin {check_in.id[:_SHORT_ID]}",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_checkins(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /checkins — the user's check-ins, newest history last."""
    check_ins = _monitor(context).for_user(update.effective_user.id)
    if not check_ins:
        await update.message.reply_text("No check-ins yet. Use /schedule.")
        return
    lines = ["*Your check-ins:*\n"] + [_format_check_in(c) for c in check_ins[:15]]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def _run_transition(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    command: str,
    action: str,
    success_text: str,
) -> None:
    """Resolve the id argument and run one monitor transition."""
    args = context.args or []
    if not args:
        await update.message.reply_text(f"Usage: /{command} <id>\nUse /checkins to see IDs.")
        return

    monitor = _monitor(context)
    check_in_id = _resolve_check_in_id(monitor, update.effective_user.id, args[0])
    if check_in_id is None:
        await update.message.reply_text("Check-in not found. Use /checkins to see IDs.")
        return

    try:
        check_in = await getattr(monitor, action)(check_in_id)
    except CheckInError as exc:
        await update.message.reply_text(
            f"That check-in can't be changed right now ({exc})."
        )
        return
    except Exception as exc:
        logger.error("/%s error: %s", command, exc)
        await update.message.reply_text("Sorry, something went wrong. Please try again.")
        return

    await update.message.reply_text(f"{success_text}\n{_format_check_in(check_in)}", parse_mode="Markdown")


@authorized_only
async def cmd_startcheckin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _run_transition(
        update, context, "startcheckin", "activate",
        "🟢 Check-in active. Your contacts know you're meeting. Reply /safe <id> when done.",
    )


@authorized_only
async def cmd_safe(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _run_transition(
        update, context, "safe", "complete", "✅ Glad you're safe. Your contacts were told.",
    )


@authorized_only
async def cmd_cancelcheckin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _run_transition(update, context, "cancelcheckin", "cancel", "Check-in cancelled.")


@authorized_only
async def cmd_sos(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _run_transition(
        update, context, "sos", "trigger_emergency",
        "🚨 Emergency alert sent to your trusted contacts.",
    )


@authorized_only
async def cmd_share(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /share <in-min> <name> @ <location> [| notes]."""
    parsed = _parse_share_args(context.args or [])
    if parsed is None:
        await update.message.reply_text(
            "Usage: /share <minutes until meeting> <name> @ <place> [| notes]"
        )
        return

    starts_in, name, location, notes = parsed
    user = update.effective_user
    contacts = _contact_db().list_all(user_id=user.id)
    meeting_time = datetime.now(timezone.utc) + timedelta(minutes=starts_in)

    try:
        confirmation = await share_meeting(
            context.bot_data["notifier"],
            sender_name=user.full_name,
            match_name=name,
            meeting_time=meeting_time,
            location=location,
            contacts=contacts,
            notes=notes,
            display_tz=_display_tz(),
        )
    except ValueError:
        await update.message.reply_text(
            "No trusted contacts with meeting alerts on. Use /addcontact or /alerts."
        )
        return

    if not confirmation.shared_with:
        await update.message.reply_text("Couldn't reach any of your contacts. Please try again.")
        return
    await update.message.reply_text(
        "📤 Meeting details shared with " + ", ".join(confirmation.shared_with) + "."
    )


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------


def build_app(notifier: NotificationPort | None = None) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        notifier: Notification port implementation. Defaults to the channel
                  router from create_notifier() (Telegram + SMS gateway).
    """
    from cofoundry.adapters.job_queue_reminders import JobQueueReminders
    from cofoundry.data.db import CheckInDB
    from cofoundry.integrations.google_maps import make_maps_link_enricher

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    if notifier is None:
        from cofoundry.adapters.notifier_factory import create_notifier
        notifier = create_notifier(app.bot)

    monitor = CheckInMonitor(
        store=CheckInDB(),
        notifier=notifier,
        reminders=JobQueueReminders(app.job_queue),
        poll_interval_seconds=settings.CHECKIN_POLL_INTERVAL_SECONDS,
        grace_period=timedelta(minutes=settings.CHECKIN_GRACE_PERIOD_MINUTES),
        location_enricher=make_maps_link_enricher(settings.GOOGLE_MAPS_API_KEY),
        display_timezone=_display_tz(),
    )

    app.bot_data["notifier"] = notifier
    app.bot_data["monitor"] = monitor

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("addcontact", cmd_addcontact))
    app.add_handler(CommandHandler("contacts", cmd_contacts))
    app.add_handler(CommandHandler("alerts", cmd_alerts))
    app.add_handler(CommandHandler("schedule", cmd_schedule))
    app.add_handler(CommandHandler("checkins", cmd_checkins))
    app.add_handler(CommandHandler("startcheckin", cmd_startcheckin))
    app.add_handler(CommandHandler("safe", cmd_safe))
    app.add_handler(CommandHandler("cancelcheckin", cmd_cancelcheckin))
    app.add_handler(CommandHandler("sos", cmd_sos))
    app.add_handler(CommandHandler("share", cmd_share))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


async def _post_init(app: Application) -> None:
    await app.bot_data["monitor"].start()


async def _post_shutdown(app: Application) -> None:
    await app.bot_data["monitor"].shutdown()


def main() -> None:
    """Entry point: build the app and start polling."""
    logger.info("Starting CoFoundry safety bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
