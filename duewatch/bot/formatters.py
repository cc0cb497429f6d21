"""Message text formatters."""

from datetime import datetime
from html import escape
from typing import List

from duewatch.db.models import (
    NotificationScheduleEntry,
    ReliabilityLogEntry,
    ScheduleSettings,
    Subscription,
)
from duewatch.engine.sink import Notification
from duewatch.utils.constants import NOTIFICATION_STRINGS, URGENCY_PROFILES
from duewatch.utils.currency import format_currency
from duewatch.utils.time_utils import (
    calendar_days_until,
    format_relative_day,
    from_utc,
    payment_date,
)


def short_id(subscription_id: str) -> str:
    return subscription_id[:8]


def format_notification(notification: Notification) -> str:
    """Format a queued notification as a chat message."""
    urgency = notification.options.data.get("urgency", "standard")
    emoji = URGENCY_PROFILES[urgency].emoji
    return (
        f"{emoji} <b>{escape(notification.title)}</b>\n\n"
        f"{escape(notification.options.body)}"
    )


def format_subscription(
    subscription: Subscription, settings: ScheduleSettings, now: datetime
) -> str:
    """Format a subscription as a detail message."""
    lines = [f"<b>{escape(subscription.name)}</b> (ID: {short_id(subscription.id)})"]

    due = payment_date(subscription.next_payment_date)
    relative = format_relative_day(
        calendar_days_until(subscription.next_payment_date, now, settings.timezone)
    )
    lines.append(f"📅 Next payment: {due.strftime('%b %d, %Y')} ({relative})")
    lines.append(f"💰 Amount: {format_currency(subscription.amount, subscription.currency)}")

    cycle = subscription.billing_cycle
    if cycle == "custom":
        cycle = f"every {subscription.custom_days} days"
    lines.append(f"🔁 Billing: {cycle}")

    if not subscription.is_active:
        lines.append("\n⏸ Paused, no reminders")

    return "\n".join(lines)


def format_subscription_list(
    subscriptions: List[Subscription],
    settings: ScheduleSettings,
    now: datetime,
    title: str = "Your Subscriptions",
) -> str:
    """Format a list of subscriptions."""
    if not subscriptions:
        return "You have no subscriptions."

    lines = [f"<b>{escape(title)} ({len(subscriptions)})</b>\n"]

    for subscription in sorted(subscriptions, key=lambda s: s.next_payment_date):
        status_emoji = "🔔" if subscription.is_active else "⏸"
        due = payment_date(subscription.next_payment_date)
        relative = format_relative_day(
            calendar_days_until(subscription.next_payment_date, now, settings.timezone)
        )

        lines.append(
            f"{status_emoji} <b>{escape(subscription.name)}</b> (ID: {short_id(subscription.id)})\n"
            f"   {format_currency(subscription.amount, subscription.currency)}"
            f" on {due.strftime('%b %d')} ({relative})"
        )

    return "\n\n".join(lines)


def format_schedule(
    entries: List[NotificationScheduleEntry],
    subscriptions: dict[str, Subscription],
    settings: ScheduleSettings,
) -> str:
    """Format the pending notification schedule."""
    if not entries:
        return "No reminders scheduled."

    lines = [f"<b>Scheduled Reminders ({len(entries)})</b>\n"]
    for entry in entries:
        subscription = subscriptions.get(entry.subscription_id)
        name = escape(subscription.name) if subscription else short_id(entry.subscription_id)
        fires = from_utc(entry.scheduled_for, settings.timezone)
        lines.append(
            f"⏰ <b>{name}</b>\n"
            f"   Fires {fires.strftime('%b %d at %H:%M')}, "
            f"payment {payment_date(entry.payment_due_at).strftime('%b %d')}"
        )
    return "\n\n".join(lines)


def format_settings(settings: ScheduleSettings) -> str:
    """Format the owner settings."""
    enabled = "on" if settings.notifications_enabled else "off"
    return (
        "<b>Settings</b>\n\n"
        f"🔔 Notifications: {enabled}\n"
        f"🔑 Permission: {settings.notification_permission}\n"
        f"📆 Days before: {settings.notification_days_before}\n"
        f"🕘 Time: {settings.notification_time}\n"
        f"🌍 Timezone: {settings.timezone}"
    )


def format_reliability_log(entries: List[ReliabilityLogEntry], settings: ScheduleSettings) -> str:
    """Format the most recent dispatch attempts."""
    if not entries:
        return "No dispatch attempts logged yet."

    status_emoji = {
        "success": "✓",
        "blocked": "⛔",
        "error": "💥",
        "missed_recovery": "↩",
    }

    lines = [f"<b>Recent Dispatches ({len(entries)})</b>\n"]
    for entry in entries:
        at = from_utc(entry.timestamp, settings.timezone)
        lines.append(
            f"{status_emoji.get(entry.status, '')} {at.strftime('%b %d %H:%M')} "
            f"{entry.status} ({entry.count})"
        )
    return "\n".join(lines)


def format_missed_summary(count: int) -> str:
    return f"🔕 {NOTIFICATION_STRINGS['missed'].format(count=count)}"


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to DueWatch!</b> 🔔

I'll remind you before your subscriptions charge you, once per payment.

<b>Quick Start:</b>
• /add Netflix 15.99 USD 2025-02-01 monthly
• /list - See all your subscriptions
• /days 3 and /time 09:00 - When to remind you
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>DueWatch Commands 🔔</b>

<b>Subscriptions:</b>
/add &lt;name&gt; &lt;amount&gt; &lt;currency&gt; &lt;YYYY-MM-DD&gt; [cycle] [days]
   cycle: weekly, monthly (default), yearly, custom
/list - All subscriptions
/paid &lt;id&gt; - Move to the next billing date
/pause &lt;id&gt; - Pause or resume reminders
/delete &lt;id&gt; - Delete a subscription

<b>Reminders:</b>
/notify on|off - Turn reminders on or off
/days &lt;1-30&gt; - Days before a payment
/time &lt;HH:MM&gt; - Time of day
/timezone &lt;tz&gt; - Your timezone (e.g., Europe/Istanbul)
/schedule - Upcoming reminders
/settings - View all settings
/reliability - Recent delivery log

<b>Tips:</b>
• IDs can be shortened to their first characters
• Payments due the same day arrive as one reminder
""".strip()
