"""Command handlers."""

import logging
from datetime import datetime
from html import escape
from uuid import uuid4
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import ContextTypes

from duewatch.app import DueWatch
from duewatch.bot.formatters import (
    format_help_message,
    format_reliability_log,
    format_schedule,
    format_settings,
    format_subscription,
    format_subscription_list,
    format_welcome_message,
)
from duewatch.bot.keyboards import subscription_actions_keyboard
from duewatch.config import Config
from duewatch.db.models import Subscription
from duewatch.db.repository import Repository
from duewatch.engine.recurrence import roll_forward
from duewatch.utils.constants import BILLING_CYCLES
from duewatch.utils.time_utils import local_today, utcnow

logger = logging.getLogger(__name__)

SCHEDULE_SYNC_JOB = "schedule-sync"


async def schedule_sync_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback for a debounced schedule recalculation."""
    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    app.synchronizer.recalculate()
    await app.save(repo)


def request_schedule_sync(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Recalculate the schedule shortly, coalescing rapid changes."""
    job_queue = context.job_queue
    if job_queue is None:
        app: DueWatch = context.bot_data["app"]
        app.synchronizer.recalculate()
        return

    for job in job_queue.get_jobs_by_name(SCHEDULE_SYNC_JOB):
        job.schedule_removal()

    job_queue.run_once(
        schedule_sync_job, when=Config.SCHEDULE_DEBOUNCE_SECONDS, name=SCHEDULE_SYNC_JOB
    )


def is_owner(app: DueWatch, update: Update) -> bool:
    chat_id = app.settings.get_settings().chat_id
    return update.effective_chat is not None and update.effective_chat.id == chat_id


def parse_subscription_args(args: list[str], tz: str) -> Subscription:
    """Build a subscription from /add arguments.

    Format: <name...> <amount> <currency> <YYYY-MM-DD> [cycle] [days]
    """
    cycle = "monthly"
    custom_days = None

    if args and args[-1].isdigit() and len(args) >= 2 and args[-2].lower() == "custom":
        custom_days = int(args[-1])
        args = args[:-1]
    if args and args[-1].lower() in BILLING_CYCLES:
        cycle = args[-1].lower()
        args = args[:-1]

    if len(args) < 4:
        raise ValueError(
            "Usage: /add <name> <amount> <currency> <YYYY-MM-DD> [cycle] [days]"
        )

    *name_parts, amount_text, currency, date_text = args

    try:
        amount = float(amount_text)
    except ValueError as e:
        raise ValueError(f"Invalid amount: {amount_text}") from e
    if amount <= 0:
        raise ValueError("Amount must be positive")

    try:
        due = datetime.strptime(date_text, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError(f"Invalid date: {date_text} (use YYYY-MM-DD)") from e

    if cycle == "custom" and not custom_days:
        raise ValueError("Custom cycle needs a number of days, e.g. 'custom 45'")

    return Subscription(
        id=uuid4().hex,
        name=" ".join(name_parts),
        amount=amount,
        currency=currency.upper(),
        billing_cycle=cycle,  # type: ignore
        custom_days=custom_days,
        next_payment_date=due.replace(tzinfo=ZoneInfo(tz)),
    )


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - pair the owner chat."""
    if not update.effective_chat or not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    chat_id = update.effective_chat.id
    owner = app.settings.get_settings().chat_id

    if owner is not None and owner != chat_id:
        await update.message.reply_text("This bot is already paired with another chat.")
        return

    app.settings.set_chat_id(chat_id)
    app.settings.set_notifications_enabled(True)
    app.sink.grant(chat_id)
    app.dispatcher.sync_notification_permissions()
    await repo.save_settings(app.settings.get_settings())
    logger.info(f"Paired owner chat {chat_id}")

    request_schedule_sync(context)
    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def add_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add command."""
    if not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")
        return

    repo: Repository = context.bot_data["repo"]
    settings = app.settings.get_settings()

    try:
        subscription = parse_subscription_args(list(context.args or []), settings.timezone)
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    app.subscriptions.add(subscription)
    await repo.save_subscription(subscription)
    request_schedule_sync(context)

    await update.message.reply_html(
        "✓ Added\n\n" + format_subscription(subscription, settings, utcnow()),
        reply_markup=subscription_actions_keyboard(subscription.id),
    )


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list command - show all subscriptions."""
    if not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")
        return

    message = format_subscription_list(
        app.subscriptions.list_subscriptions(), app.settings.get_settings(), utcnow()
    )
    await update.message.reply_html(message)


async def _resolve_subscription(
    update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str
) -> Subscription | None:
    """Look up the subscription named by the single command argument."""
    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")  # type: ignore
        return None

    if not context.args or len(context.args) != 1:
        await update.message.reply_text(usage)  # type: ignore
        return None

    subscription = app.subscriptions.find_by_prefix(context.args[0])
    if subscription is None:
        await update.message.reply_text("Subscription not found.")  # type: ignore
    return subscription


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <id> command."""
    if not update.message:
        return

    subscription = await _resolve_subscription(update, context, "Usage: /delete <id>")
    if subscription is None:
        return

    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    app.subscriptions.delete(subscription.id)
    await repo.delete_subscription(subscription.id)
    request_schedule_sync(context)

    await update.message.reply_html(f"🗑 Deleted: <b>{escape(subscription.name)}</b>")


async def mark_paid(app: DueWatch, repo: Repository, subscription: Subscription) -> Subscription:
    """Move a subscription to its next billing date and persist it."""
    today = local_today(utcnow(), app.settings.get_settings().timezone)
    subscription.next_payment_date = roll_forward(subscription, today)
    app.subscriptions.update(subscription)
    await repo.save_subscription(subscription)
    return subscription


async def paid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /paid <id> command."""
    if not update.message:
        return

    subscription = await _resolve_subscription(update, context, "Usage: /paid <id>")
    if subscription is None:
        return

    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]

    try:
        await mark_paid(app, repo, subscription)
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    request_schedule_sync(context)
    await update.message.reply_html(
        "✓ Paid\n\n" + format_subscription(subscription, app.settings.get_settings(), utcnow())
    )


async def pause_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /pause <id> command - toggles reminders for a subscription."""
    if not update.message:
        return

    subscription = await _resolve_subscription(update, context, "Usage: /pause <id>")
    if subscription is None:
        return

    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    subscription.is_active = not subscription.is_active
    app.subscriptions.update(subscription)
    await repo.save_subscription(subscription)
    request_schedule_sync(context)

    state = "resumed" if subscription.is_active else "paused"
    await update.message.reply_html(f"Reminders {state} for <b>{escape(subscription.name)}</b>")


async def _update_setting(
    update: Update, context: ContextTypes.DEFAULT_TYPE, apply, usage: str
) -> None:
    """Apply a settings change from the single command argument."""
    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")  # type: ignore
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_html(  # type: ignore
            f"{escape(usage)}\n\n{format_settings(app.settings.get_settings())}"
        )
        return

    try:
        apply(app, context.args[0])
    except ValueError as e:
        await update.message.reply_text(str(e))  # type: ignore
        return

    repo: Repository = context.bot_data["repo"]
    await repo.save_settings(app.settings.get_settings())
    request_schedule_sync(context)
    await update.message.reply_html(  # type: ignore
        "✓ Updated\n\n" + format_settings(app.settings.get_settings())
    )


def _apply_notify(app: DueWatch, value: str) -> None:
    value = value.lower()
    if value not in ("on", "off"):
        raise ValueError("Use /notify on or /notify off")
    app.settings.set_notifications_enabled(value == "on")


def _apply_days(app: DueWatch, value: str) -> None:
    try:
        days = int(value)
    except ValueError as e:
        raise ValueError("Days must be a number") from e
    app.settings.set_notification_days_before(days)


async def notify_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /notify on|off command."""
    if update.message:
        await _update_setting(update, context, _apply_notify, "Usage: /notify on|off")


async def days_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /days <1-30> command."""
    if update.message:
        await _update_setting(update, context, _apply_days, "Usage: /days <1-30>")


async def time_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /time <HH:MM> command."""
    if update.message:
        await _update_setting(
            update,
            context,
            lambda app, value: app.settings.set_notification_time(value),
            "Usage: /time <HH:MM>",
        )


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <tz> command."""
    if update.message:
        await _update_setting(
            update,
            context,
            lambda app, value: app.settings.set_timezone(value),
            "Usage: /timezone Europe/Istanbul",
        )


async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings command."""
    if not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    await update.message.reply_html(format_settings(app.settings.get_settings()))


async def schedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /schedule command - pending reminders."""
    if not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")
        return

    subscriptions = {s.id: s for s in app.subscriptions.list_subscriptions()}
    message = format_schedule(
        app.schedule.get_pending_notifications(), subscriptions, app.settings.get_settings()
    )
    await update.message.reply_html(message)


async def reliability_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reliability command - the last ten dispatch attempts."""
    if not update.message:
        return

    app: DueWatch = context.bot_data["app"]
    if not is_owner(app, update):
        await update.message.reply_text("Please /start the bot first.")
        return

    entries = app.reliability_log.entries()[-10:]
    await update.message.reply_html(
        format_reliability_log(entries, app.settings.get_settings())
    )

