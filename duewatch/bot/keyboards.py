"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from duewatch.utils.constants import NOTIFICATION_STRINGS


def notification_keyboard(notification_id: str) -> InlineKeyboardMarkup:
    """Keyboard for reminder messages: Open."""
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("Open", callback_data=f"notif:{notification_id}")]]
    )


def missed_keyboard() -> InlineKeyboardMarkup:
    """Keyboard for the missed-reminders summary: View."""
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(NOTIFICATION_STRINGS["missed_action"], callback_data="missed")]]
    )


def subscription_actions_keyboard(subscription_id: str) -> InlineKeyboardMarkup:
    """Keyboard for subscription detail view: Paid, Delete."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Paid", callback_data=f"paid:{subscription_id}"),
                InlineKeyboardButton("🗑 Delete", callback_data=f"delete:{subscription_id}"),
            ]
        ]
    )
