"""Callback query handlers for inline buttons."""

import logging

from telegram import Update
from telegram.ext import ContextTypes

from duewatch.app import DueWatch
from duewatch.bot.formatters import format_subscription, format_subscription_list
from duewatch.bot.handlers import mark_paid, request_schedule_sync
from duewatch.bot.keyboards import subscription_actions_keyboard
from duewatch.db.repository import Repository
from duewatch.utils.time_utils import payment_date, utcnow

logger = logging.getLogger(__name__)


async def show_ui_state(update: Update, app: DueWatch) -> None:
    """Render what a notification click navigated to."""
    message = update.effective_message
    if message is None:
        return

    settings = app.settings.get_settings()
    now = utcnow()

    if app.ui.active_modal == "editSubscription" and app.ui.editing_subscription_id:
        subscription = app.subscriptions.get_subscription_by_id(app.ui.editing_subscription_id)
        if subscription is None:
            await message.reply_text("This subscription no longer exists.")
            return
        await message.reply_html(
            format_subscription(subscription, settings, now),
            reply_markup=subscription_actions_keyboard(subscription.id),
        )

    elif app.ui.date_filter:
        dates = set(app.ui.date_filter.split(","))
        due = [
            s
            for s in app.subscriptions.list_subscriptions()
            if payment_date(s.next_payment_date).isoformat() in dates
        ]
        await message.reply_html(
            format_subscription_list(due, settings, now, title="Payments due")
        )

    else:
        # e.g. a missed-reminders summary from before a restart
        await message.reply_text("Nothing to show anymore. Use /list to see all subscriptions.")


async def handle_notification_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, notification_id: str
) -> None:
    """Handle the 'Open' button on a delivered reminder."""
    app: DueWatch = context.bot_data["app"]
    query = update.callback_query

    notification = app.sink.get(notification_id)
    if notification is None or not notification.click():
        await query.answer("This reminder has expired.")  # type: ignore
        return

    await query.answer()  # type: ignore
    await show_ui_state(update, app)


async def handle_missed_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle 'View' on the missed-reminders summary."""
    app: DueWatch = context.bot_data["app"]

    app.ui.focus()
    app.ui.close_modal()
    app.ui.set_date_filter(",".join(app.last_missed_dates) or None)

    await update.callback_query.answer()  # type: ignore
    await show_ui_state(update, app)


async def handle_paid_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, subscription_id: str
) -> None:
    """Handle the 'Paid' button."""
    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    query = update.callback_query

    subscription = app.subscriptions.get_subscription_by_id(subscription_id)
    if subscription is None:
        await query.answer("Subscription not found.")  # type: ignore
        return

    try:
        await mark_paid(app, repo, subscription)
    except ValueError as e:
        await query.answer(str(e))  # type: ignore
        return

    request_schedule_sync(context)

    if query.message:  # type: ignore
        await query.message.edit_text(  # type: ignore
            "✓ Paid\n\n" + format_subscription(subscription, app.settings.get_settings(), utcnow()),
            parse_mode="HTML",
        )
    await query.answer(f"✓ {subscription.name} marked as paid")  # type: ignore


async def handle_delete_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, subscription_id: str
) -> None:
    """Handle the 'Delete' button."""
    app: DueWatch = context.bot_data["app"]
    repo: Repository = context.bot_data["repo"]
    query = update.callback_query

    subscription = app.subscriptions.delete(subscription_id)
    if subscription is None:
        await query.answer("Subscription not found.")  # type: ignore
        return

    await repo.delete_subscription(subscription_id)
    request_schedule_sync(context)

    if query.message:  # type: ignore
        await query.message.edit_text(f"🗑 Deleted: {subscription.name}")  # type: ignore
    await query.answer("Deleted")  # type: ignore


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to the right handler."""
    query = update.callback_query
    if not query or not query.data:
        return

    app: DueWatch = context.bot_data["app"]
    if update.effective_chat is None or update.effective_chat.id != app.settings.get_settings().chat_id:
        await query.answer("Please /start the bot first.")
        return

    action, _, argument = query.data.partition(":")

    if action == "notif":
        await handle_notification_callback(update, context, argument)
    elif action == "missed":
        await handle_missed_callback(update, context)
    elif action == "paid":
        await handle_paid_callback(update, context, argument)
    elif action == "delete":
        await handle_delete_callback(update, context, argument)
    else:
        logger.warning(f"Unknown callback data: {query.data}")
        await query.answer()
