"""Dispatch engine - the sweep that turns due schedule entries into notifications."""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List

from duewatch.db.models import NotificationScheduleEntry, Subscription
from duewatch.db.stores import ScheduleRepository, SettingsProvider, SubscriptionRepository
from duewatch.engine.events import EventSink
from duewatch.engine.reliability import ReliabilityLog
from duewatch.engine.renderer import NotificationRenderer
from duewatch.engine.sink import Notification, NotificationSink
from duewatch.utils.time_utils import ensure_aware, payment_date, utcnow

logger = logging.getLogger(__name__)


def group_by_due_date(
    entries: Iterable[NotificationScheduleEntry],
) -> Dict[date, List[NotificationScheduleEntry]]:
    """Bucket entries by the calendar date of their payment, in first-seen order."""
    groups: Dict[date, List[NotificationScheduleEntry]] = defaultdict(list)
    for entry in entries:
        groups[payment_date(entry.payment_due_at)].append(entry)
    return dict(groups)


class DispatchEngine:
    """Finds due schedule entries and shows at most one reminder per occurrence.

    A sweep is synchronous and runs to completion. Concurrent or re-entrant
    sweeps are made safe by re-reading each entry from the live store right
    before rendering, not by locking.
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        settings: SettingsProvider,
        schedule: ScheduleRepository,
        renderer: NotificationRenderer,
        reliability_log: ReliabilityLog,
        sink: NotificationSink,
        events: EventSink | None = None,
    ):
        self.subscriptions = subscriptions
        self.settings = settings
        self.schedule = schedule
        self.renderer = renderer
        self.reliability_log = reliability_log
        self.sink = sink
        self.events = events

    def check_and_dispatch_notifications(self, now: datetime | None = None) -> int:
        """Run one dispatch sweep.

        Returns:
            Number of notifications shown
        """
        now = ensure_aware(now) if now else utcnow()

        pending = self.schedule.get_pending_notifications()
        ready = [entry for entry in pending if entry.scheduled_for < now]
        if not ready:
            return 0

        groups = group_by_due_date(ready)
        logger.info(f"Dispatch: {len(ready)} entries ready in {len(groups)} group(s)")

        shown = 0
        for due_date, entries in groups.items():
            if self._dispatch_group(due_date, entries, now):
                shown += 1
        return shown

    def _dispatch_group(
        self, due_date: date, entries: List[NotificationScheduleEntry], now: datetime
    ) -> bool:
        # Re-read from the live store; another sweep may have stamped these
        fresh = []
        for entry in entries:
            current = self.schedule.get_entry_by_subscription_id(entry.subscription_id)
            if current is None or current.notified_at is not None:
                continue
            fresh.append(current)

        if not fresh:
            return False

        ids = [entry.subscription_id for entry in fresh]
        try:
            resolved: List[Subscription] = []
            for entry in fresh:
                subscription = self.subscriptions.get_subscription_by_id(entry.subscription_id)
                if subscription is None:
                    logger.warning(f"Subscription {entry.subscription_id} not found")
                    continue
                resolved.append(subscription)

            if not resolved:
                return False

            ids = [subscription.id for subscription in resolved]
            payment_due_at = fresh[0].payment_due_at

            if len(resolved) == 1:
                notification = self.renderer.display_notification(
                    resolved[0], payment_due_at, now
                )
            else:
                notification = self.renderer.display_grouped_notification(
                    resolved, payment_due_at, now
                )

            if notification is None:
                # Left pending so the next sweep retries
                self.reliability_log.append(ids, "blocked", now)
                return False

            self.schedule.mark_batch_as_notified(ids, now)
            self.reliability_log.append(ids, "success", now)
            logger.info(f"Notified {len(ids)} payment(s) due {due_date.isoformat()}")
            return True

        except Exception:
            logger.exception(f"Error displaying notification for {due_date.isoformat()}")
            self.reliability_log.append(ids, "error", now)
            return False

    def handle_delivery_failure(
        self, notification: Notification, now: datetime | None = None
    ) -> None:
        """Re-arm the entries behind a notification that never reached the owner.

        The entries go back to pending and the attempt is logged as
        "blocked", so a later sweep shows them again.
        """
        data = notification.options.data
        ids = list(data.get("subscriptionIds") or [data["subscriptionId"]])

        cleared = self.schedule.mark_batch_as_pending(ids)
        self.reliability_log.append(ids, "blocked", now)
        logger.warning(
            f"Delivery of {notification.tag} failed, {cleared} entries re-armed"
        )

    def sync_notification_permissions(self, now: datetime | None = None) -> bool:
        """Copy the live permission into settings.

        Returns:
            True if the cached permission changed
        """
        if not self.sink.supported:
            return False

        current = self.sink.permission
        cached = self.settings.get_settings().notification_permission
        if current == cached:
            return False

        self.settings.set_notification_permission(current)
        logger.info(f"Notification permission changed: {cached} -> {current}")

        if current == "denied":
            self.settings.set_notification_permission_denied(
                ensure_aware(now) if now else utcnow()
            )
            if self.events is not None:
                self.events.log_event("notification_denied", {"previous": cached})

        return True
