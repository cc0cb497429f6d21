"""Notification time calculation for a single payment.

These functions only calculate; dispatch lives in the dispatcher. Times are
built with wall-clock semantics in the owner's timezone, so "09:00" stays
09:00 local even when the lead time crosses a DST transition.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from duewatch.utils.constants import DEFAULT_TIMEZONE
from duewatch.utils.time_utils import (
    ensure_aware,
    local_today,
    parse_time_of_day,
    payment_date,
)


def calculate_scheduled_time(
    next_payment_date: str | datetime,
    days_before: int,
    notify_time: str,
    tz: str = DEFAULT_TIMEZONE,
) -> datetime:
    """Calculate when the reminder for a payment should fire.

    Args:
        next_payment_date: ISO instant (or datetime) of the payment
        days_before: How many calendar days before the payment to notify
        notify_time: Time of day to notify (HH:MM)
        tz: The owner's timezone

    Returns:
        Aware datetime in ``tz``, seconds and microseconds zeroed
    """
    notify_at = parse_time_of_day(notify_time)

    # Use the calendar date as written; shifting to UTC first would move
    # the payment a day earlier for users west of UTC
    notify_day = payment_date(next_payment_date) - timedelta(days=days_before)

    return datetime.combine(notify_day, notify_at, tzinfo=ZoneInfo(tz))


def handle_imminent_payment(
    original_scheduled_for: datetime,
    notify_time: str,
    now: datetime,
    tz: str = DEFAULT_TIMEZONE,
) -> datetime:
    """Adjust a schedule whose ideal fire time has already elapsed.

    - Still in the future: returned unchanged
    - Today's notify time not reached yet: today at notify time
    - Otherwise: ``now``, so the next sweep dispatches it
    """
    now = ensure_aware(now)
    if ensure_aware(original_scheduled_for) > now:
        return original_scheduled_for

    today_at_notify_time = datetime.combine(
        local_today(now, tz), parse_time_of_day(notify_time), tzinfo=ZoneInfo(tz)
    )
    if today_at_notify_time > now:
        return today_at_notify_time

    return now
