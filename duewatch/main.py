"""Main entry point for the DueWatch bot."""

import logging
import sys

from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from duewatch.app import DueWatch
from duewatch.bot.callbacks import callback_router
from duewatch.bot.handlers import (
    add_command,
    days_command,
    delete_command,
    help_command,
    list_command,
    notify_command,
    paid_command,
    pause_command,
    reliability_command,
    schedule_command,
    settings_command,
    start_command,
    time_command,
    timezone_command,
)
from duewatch.config import Config
from duewatch.db.migrations import run_migrations
from duewatch.db.repository import Repository
from duewatch.engine.lifecycle import heartbeat, startup_recovery
from duewatch.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


async def heartbeat_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the heartbeat."""
    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    await heartbeat(context.bot, app, repo)


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()
    application.bot_data["repo"] = repo

    app = DueWatch(Config.DEFAULT_TIMEZONE)
    await app.load(repo)
    application.bot_data["app"] = app

    await startup_recovery(application.bot, app, repo)

    # Start the heartbeat job
    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            heartbeat_job,
            interval=Config.HEARTBEAT_INTERVAL,
            first=10,
            name="heartbeat",
        )
        logger.info(f"Heartbeat job scheduled (interval: {Config.HEARTBEAT_INTERVAL}s)")
    else:
        logger.warning("No job queue available; install python-telegram-bot[job-queue]")

    logger.info("DueWatch initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Save state and close the database on shutdown."""
    repo: Repository | None = application.bot_data.get("repo")
    app: DueWatch | None = application.bot_data.get("app")
    if repo:
        if app:
            await app.save(repo)
        await repo.close()

    logger.info("DueWatch shut down")


def main() -> None:
    """Start the bot."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Subscriptions
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("add", add_command))
    application.add_handler(CommandHandler("list", list_command))
    application.add_handler(CommandHandler("paid", paid_command))
    application.add_handler(CommandHandler("pause", pause_command))
    application.add_handler(CommandHandler("delete", delete_command))

    # Settings commands
    application.add_handler(CommandHandler("notify", notify_command))
    application.add_handler(CommandHandler("days", days_command))
    application.add_handler(CommandHandler("time", time_command))
    application.add_handler(CommandHandler("timezone", timezone_command))
    application.add_handler(CommandHandler("settings", settings_command))

    # Diagnostics
    application.add_handler(CommandHandler("schedule", schedule_command))
    application.add_handler(CommandHandler("reliability", reliability_command))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    application.add_error_handler(error_handler)

    logger.info("Starting DueWatch bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
