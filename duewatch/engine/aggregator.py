"""Builds the notification schedule for all subscriptions."""

import logging
from datetime import datetime
from typing import Iterable, List

from duewatch.db.models import NotificationScheduleEntry, ScheduleSettings, Subscription
from duewatch.db.stores import ScheduleRepository, SettingsProvider, SubscriptionRepository
from duewatch.engine.calculator import calculate_scheduled_time, handle_imminent_payment
from duewatch.utils.time_utils import ensure_aware, local_today, payment_date, utcnow

logger = logging.getLogger(__name__)


def can_schedule(settings: ScheduleSettings) -> bool:
    """Scheduling requires notifications enabled and permission granted."""
    return settings.notifications_enabled and settings.notification_permission == "granted"


def calculate_notification_schedule(
    subscriptions: Iterable[Subscription],
    settings: ScheduleSettings,
    now: datetime | None = None,
) -> List[NotificationScheduleEntry]:
    """Calculate one schedule entry per eligible subscription.

    Only active subscriptions whose payment date is today or later are
    scheduled. The result is sorted by scheduled_for, earliest first, and is
    identical for identical inputs.
    """
    if not can_schedule(settings):
        return []

    now = ensure_aware(now) if now else utcnow()
    today = local_today(now, settings.timezone)
    schedule: List[NotificationScheduleEntry] = []

    for subscription in subscriptions:
        if not subscription.is_active:
            continue

        if payment_date(subscription.next_payment_date) < today:
            continue

        scheduled_for = calculate_scheduled_time(
            subscription.next_payment_date,
            settings.notification_days_before,
            settings.notification_time,
            settings.timezone,
        )
        scheduled_for = handle_imminent_payment(
            scheduled_for, settings.notification_time, now, settings.timezone
        )

        schedule.append(
            NotificationScheduleEntry(
                subscription_id=subscription.id,
                scheduled_for=scheduled_for,
                payment_due_at=subscription.next_payment_date,
            )
        )

    schedule.sort(key=lambda entry: entry.scheduled_for)
    return schedule


class ScheduleSynchronizer:
    """Keeps the stored schedule in line with subscriptions and settings."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        settings: SettingsProvider,
        schedule: ScheduleRepository,
    ):
        self.subscriptions = subscriptions
        self.settings = settings
        self.schedule = schedule

    def recalculate(self, now: datetime | None = None) -> List[NotificationScheduleEntry]:
        """Recompute and store the schedule; clears it if preconditions fail."""
        now = ensure_aware(now) if now else utcnow()
        settings = self.settings.get_settings()

        if not can_schedule(settings):
            self.schedule.clear_schedule(now)
            logger.debug(
                "Preconditions not met, schedule cleared "
                f"(enabled={settings.notifications_enabled}, "
                f"permission={settings.notification_permission})"
            )
            return []

        entries = calculate_notification_schedule(
            self.subscriptions.list_subscriptions(), settings, now
        )
        self.schedule.update_schedule(entries, now)
        logger.info(f"Schedule updated: {len(entries)} entries")
        return entries
