"""In-memory stores and the repository interfaces the engine depends on.

All store reads and writes are synchronous, so a write made by one dispatch
sweep is visible to the next read in the same tick.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Protocol

from duewatch.db.models import (
    NotificationScheduleEntry,
    PermissionState,
    ScheduleSettings,
    Subscription,
)
from duewatch.utils.constants import MAX_DAYS_BEFORE, MIN_DAYS_BEFORE
from duewatch.utils.time_utils import is_valid_timezone, parse_time_of_day, utcnow

logger = logging.getLogger(__name__)


class SubscriptionRepository(Protocol):
    def get_subscription_by_id(self, subscription_id: str) -> Subscription | None: ...

    def list_subscriptions(self) -> List[Subscription]: ...


class SettingsProvider(Protocol):
    def get_settings(self) -> ScheduleSettings: ...

    def set_notification_permission(self, permission: PermissionState) -> None: ...

    def set_notification_permission_denied(self, at: datetime) -> None: ...

    def set_last_notification_check(self, at: datetime) -> None: ...


class ScheduleRepository(Protocol):
    def get_schedule(self) -> List[NotificationScheduleEntry]: ...

    def get_pending_notifications(self) -> List[NotificationScheduleEntry]: ...

    def get_entry_by_subscription_id(
        self, subscription_id: str
    ) -> NotificationScheduleEntry | None: ...

    def update_schedule(
        self, entries: List[NotificationScheduleEntry], now: datetime | None = None
    ) -> bool: ...

    def mark_batch_as_notified(
        self, subscription_ids: Iterable[str], now: datetime | None = None
    ) -> int: ...

    def mark_batch_as_pending(self, subscription_ids: Iterable[str]) -> int: ...

    def clear_schedule(self, now: datetime | None = None) -> None: ...


class SubscriptionStore:
    """Subscriptions keyed by id, in insertion order."""

    def __init__(self, subscriptions: Iterable[Subscription] = ()):
        self._subscriptions: dict[str, Subscription] = {}
        for subscription in subscriptions:
            self.add(subscription)

    def add(self, subscription: Subscription) -> None:
        if subscription.id in self._subscriptions:
            raise ValueError(f"Subscription {subscription.id} already exists")
        self._subscriptions[subscription.id] = subscription

    def update(self, subscription: Subscription) -> None:
        if subscription.id not in self._subscriptions:
            raise KeyError(subscription.id)
        self._subscriptions[subscription.id] = subscription

    def delete(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.pop(subscription_id, None)

    def get_subscription_by_id(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(subscription_id)

    def list_subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    def find_by_prefix(self, prefix: str) -> Subscription | None:
        """Resolve a short id; None if missing or ambiguous."""
        matches = [s for s in self._subscriptions.values() if s.id.startswith(prefix)]
        if len(matches) != 1:
            return None
        return matches[0]


class SettingsStore:
    """Owner settings with validating setters."""

    def __init__(self, settings: ScheduleSettings | None = None):
        self._settings = settings or ScheduleSettings()

    def get_settings(self) -> ScheduleSettings:
        return self._settings

    def replace(self, settings: ScheduleSettings) -> None:
        self._settings = settings

    def set_notification_permission(self, permission: PermissionState) -> None:
        self._settings.notification_permission = permission

    def set_notification_permission_denied(self, at: datetime) -> None:
        self._settings.permission_denied_at = at

    def set_last_notification_check(self, at: datetime) -> None:
        self._settings.last_notification_check = at

    def set_notifications_enabled(self, enabled: bool) -> None:
        self._settings.notifications_enabled = enabled

    def set_chat_id(self, chat_id: int | None) -> None:
        self._settings.chat_id = chat_id

    def set_notification_days_before(self, days: int) -> None:
        if not MIN_DAYS_BEFORE <= days <= MAX_DAYS_BEFORE:
            raise ValueError(
                f"Days before must be between {MIN_DAYS_BEFORE} and {MAX_DAYS_BEFORE}"
            )
        self._settings.notification_days_before = days

    def set_notification_time(self, value: str) -> None:
        if ":" not in value:
            raise ValueError("Time must be in HH:MM format")
        try:
            parsed = parse_time_of_day(value)
        except ValueError as e:
            raise ValueError("Time must be in HH:MM format") from e
        self._settings.notification_time = parsed.strftime("%H:%M")

    def set_timezone(self, tz: str) -> None:
        if not is_valid_timezone(tz):
            raise ValueError(f"Unknown timezone: {tz}")
        self._settings.timezone = tz


class ScheduleStore:
    """The notification schedule.

    Entries are immutable; every write swaps in new entry objects, so lists
    handed out earlier are snapshots.
    """

    def __init__(self, entries: Iterable[NotificationScheduleEntry] = ()):
        self._schedule: List[NotificationScheduleEntry] = list(entries)
        self.last_calculated_at: datetime | None = None

    def get_schedule(self) -> List[NotificationScheduleEntry]:
        return list(self._schedule)

    def get_pending_notifications(self) -> List[NotificationScheduleEntry]:
        return [entry for entry in self._schedule if entry.is_pending]

    def get_entry_by_subscription_id(
        self, subscription_id: str
    ) -> NotificationScheduleEntry | None:
        for entry in self._schedule:
            if entry.subscription_id == subscription_id:
                return entry
        return None

    def update_schedule(
        self, entries: List[NotificationScheduleEntry], now: datetime | None = None
    ) -> bool:
        """Replace the whole schedule.

        An entry recomputed for the same payment occurrence keeps its
        notified_at stamp. Schedules with duplicate subscription ids are
        rejected and leave the store unchanged.
        """
        ids = [entry.subscription_id for entry in entries]
        if len(ids) != len(set(ids)):
            logger.warning("Schedule with duplicate subscription ids rejected")
            return False

        previous = {entry.subscription_id: entry for entry in self._schedule}
        schedule = []
        for entry in entries:
            old = previous.get(entry.subscription_id)
            if (
                old is not None
                and old.notified_at is not None
                and entry.notified_at is None
                and old.payment_due_at == entry.payment_due_at
            ):
                entry = replace(entry, notified_at=old.notified_at)
            schedule.append(entry)

        self._schedule = schedule
        self.last_calculated_at = now or utcnow()
        return True

    def mark_batch_as_notified(
        self, subscription_ids: Iterable[str], now: datetime | None = None
    ) -> int:
        """Stamp notified_at on every pending entry in the batch.

        Already stamped entries are left alone. Returns the number stamped.
        """
        ids = set(subscription_ids)
        stamp = now or utcnow()
        stamped = 0
        schedule = []
        for entry in self._schedule:
            if entry.subscription_id in ids and entry.notified_at is None:
                entry = replace(entry, notified_at=stamp)
                stamped += 1
            schedule.append(entry)
        self._schedule = schedule
        return stamped

    def mark_batch_as_pending(self, subscription_ids: Iterable[str]) -> int:
        """Clear notified_at on the batch so the next sweep shows it again.

        Returns the number of entries cleared.
        """
        ids = set(subscription_ids)
        cleared = 0
        schedule = []
        for entry in self._schedule:
            if entry.subscription_id in ids and entry.notified_at is not None:
                entry = replace(entry, notified_at=None)
                cleared += 1
            schedule.append(entry)
        self._schedule = schedule
        return cleared

    def clear_schedule(self, now: datetime | None = None) -> None:
        self._schedule = []
        self.last_calculated_at = now or utcnow()


class UIStore:
    """Non-persisted view state that notification clicks drive."""

    def __init__(self) -> None:
        self.active_modal: str | None = None
        self.editing_subscription_id: str | None = None
        self.date_filter: str | None = None
        self.focused = False

    def focus(self) -> None:
        self.focused = True

    def open_modal(self, modal: str, subscription_id: str | None = None) -> None:
        self.active_modal = modal
        self.editing_subscription_id = subscription_id

    def close_modal(self) -> None:
        self.active_modal = None
        self.editing_subscription_id = None

    def set_date_filter(self, date_filter: str | None) -> None:
        self.date_filter = date_filter

    def reset(self) -> None:
        self.close_modal()
        self.date_filter = None
        self.focused = False
