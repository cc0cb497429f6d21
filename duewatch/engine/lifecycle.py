"""Heartbeat and startup recovery - what runs the dispatch engine."""

import logging

from telegram import Bot
from telegram.error import TelegramError

from duewatch.app import DueWatch
from duewatch.bot.formatters import format_missed_summary
from duewatch.bot.keyboards import missed_keyboard
from duewatch.db.repository import Repository
from duewatch.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def heartbeat(bot: Bot, app: DueWatch, repo: Repository) -> None:
    """Heartbeat job that sends due reminders.

    This runs every HEARTBEAT_INTERVAL seconds and:
    1. Syncs the live permission into settings (recalculating on change)
    2. Runs a dispatch sweep
    3. Delivers queued notifications and saves state
    """
    now = utcnow()

    try:
        if app.dispatcher.sync_notification_permissions(now):
            app.synchronizer.recalculate(now)

        app.dispatcher.check_and_dispatch_notifications(now)

        sent = await app.sink.flush(
            bot, on_failure=lambda failed: app.dispatcher.handle_delivery_failure(failed, now)
        )
        if sent:
            logger.info(f"Heartbeat: delivered {sent} notification(s)")

        # Delivery may have found the bot blocked
        if app.dispatcher.sync_notification_permissions(now):
            app.synchronizer.recalculate(now)

        await app.save(repo)

    except Exception as e:
        logger.error(f"Heartbeat error: {e}")


async def startup_recovery(bot: Bot, app: DueWatch, repo: Repository) -> None:
    """Recovery on startup: summarise reminders missed while offline.

    Stale entries are dropped and missed ones are marked notified, then the
    owner gets a single summary message instead of a burst of reminders.
    """
    now = utcnow()

    try:
        # Recover from the persisted schedule before recalculating, which would
        # move elapsed entries up to now
        result = app.recovery.run_recovery(now)
        app.last_missed_dates = result.dates
        app.synchronizer.recalculate(now)

        if result.missed and app.sink.permission == "granted":
            try:
                await bot.send_message(
                    chat_id=app.sink.chat_id,  # type: ignore
                    text=format_missed_summary(len(result.missed)),
                    reply_markup=missed_keyboard(),
                )
            except TelegramError as e:
                logger.error(f"Failed to send missed reminders summary: {e}")

        await app.save(repo)
        logger.info("Startup recovery complete")

    except Exception as e:
        logger.error(f"Startup recovery error: {e}")
