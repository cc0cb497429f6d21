"""Builds the notifications users see, single and grouped."""

import logging
from datetime import datetime
from typing import List

from duewatch.db.models import NotificationOptions, Subscription, Urgency
from duewatch.db.stores import SettingsProvider, UIStore
from duewatch.engine.events import EventSink
from duewatch.engine.sink import BackgroundNotificationSink, Notification, NotificationSink
from duewatch.utils.constants import (
    IMMINENT_PAYMENT_DAYS,
    NOTIFICATION_BADGE,
    NOTIFICATION_ICON,
    NOTIFICATION_STRINGS,
    URGENCY_PROFILES,
)
from duewatch.utils.currency import format_currency, format_total
from duewatch.utils.time_utils import calendar_days_until, payment_date, utcnow

logger = logging.getLogger(__name__)


def calculate_urgency(days_diff: int) -> Urgency:
    """Payments due within IMMINENT_PAYMENT_DAYS are imminent."""
    return "imminent" if days_diff <= IMMINENT_PAYMENT_DAYS else "standard"


def describe_due(days_diff: int) -> str:
    if days_diff == 0:
        return NOTIFICATION_STRINGS["today"]
    if days_diff == 1:
        return NOTIFICATION_STRINGS["tomorrow"]
    if days_diff < 0:
        return NOTIFICATION_STRINGS["overdue"]
    return NOTIFICATION_STRINGS["in_days"].format(days=days_diff)


class NotificationRenderer:
    """Renders reminders onto a NotificationSink.

    Returns None instead of raising when notifications are unsupported or
    not permitted.
    """

    def __init__(
        self,
        sink: NotificationSink,
        settings: SettingsProvider,
        ui: UIStore,
        events: EventSink | None = None,
        background_sink: BackgroundNotificationSink | None = None,
    ):
        self.sink = sink
        self.settings = settings
        self.ui = ui
        self.events = events
        self.background_sink = background_sink

    def can_display(self) -> bool:
        return self.sink.supported and self.sink.permission == "granted"

    def display_notification(
        self,
        subscription: Subscription,
        payment_due_at: datetime,
        now: datetime | None = None,
    ) -> Notification | None:
        """Show the reminder for one payment."""
        if not self.can_display():
            logger.warning("Notification permission not granted")
            return None

        days_diff = calendar_days_until(
            payment_due_at, now or utcnow(), self.settings.get_settings().timezone
        )
        urgency = calculate_urgency(days_diff)

        title = NOTIFICATION_STRINGS["single_title"].format(name=subscription.name)
        body = NOTIFICATION_STRINGS["single_body"].format(
            amount=format_currency(subscription.amount, subscription.currency),
            when=describe_due(days_diff),
        )
        options = self._build_options(
            body,
            tag=subscription.id,
            urgency=urgency,
            data={
                "subscriptionId": subscription.id,
                "url": f"/dashboard?subscriptionId={subscription.id}",
            },
        )

        notification = self._show(title, options)
        if notification is None:
            return None

        def on_click() -> None:
            self.ui.focus()
            self.ui.open_modal("editSubscription", subscription.id)
            notification.close()

        notification.on_click = on_click
        self._log_shown(urgency, days_diff, grouped=False, count=1)
        return notification

    def display_grouped_notification(
        self,
        subscriptions: List[Subscription],
        payment_due_at: datetime,
        now: datetime | None = None,
    ) -> Notification | None:
        """Show one reminder for several payments due on the same day."""
        if not self.can_display():
            logger.warning("Notification permission not granted")
            return None

        days_diff = calendar_days_until(
            payment_due_at, now or utcnow(), self.settings.get_settings().timezone
        )
        urgency = calculate_urgency(days_diff)
        due_date = payment_date(payment_due_at).isoformat()

        body = NOTIFICATION_STRINGS["grouped_body"].format(
            count=len(subscriptions),
            when=describe_due(days_diff),
            total=format_total((s.amount, s.currency) for s in subscriptions),
        )
        options = self._build_options(
            body,
            tag=f"grouped-{due_date}",
            urgency=urgency,
            data={
                "subscriptionIds": [s.id for s in subscriptions],
                "date": due_date,
                "url": f"/dashboard?date={due_date}",
            },
        )

        notification = self._show(NOTIFICATION_STRINGS["grouped_title"], options)
        if notification is None:
            return None

        def on_click() -> None:
            self.ui.focus()
            self.ui.close_modal()
            self.ui.set_date_filter(due_date)
            notification.close()

        notification.on_click = on_click
        self._log_shown(urgency, days_diff, grouped=True, count=len(subscriptions))
        return notification

    def _build_options(
        self, body: str, tag: str, urgency: Urgency, data: dict
    ) -> NotificationOptions:
        return NotificationOptions(
            body=body,
            tag=tag,
            icon=NOTIFICATION_ICON,
            badge=NOTIFICATION_BADGE,
            vibrate=list(URGENCY_PROFILES[urgency].vibrate),
            data={**data, "urgency": urgency},
        )

    def _show(self, title: str, options: NotificationOptions) -> Notification | None:
        # The background copy is opportunistic and independent of the direct one
        if self.background_sink is not None and self.background_sink.ready:
            try:
                self.background_sink.show(title, options)
            except Exception as e:
                logger.warning(f"Background notification failed: {e}")

        return self.sink.show(title, options)

    def _log_shown(self, urgency: Urgency, days_diff: int, grouped: bool, count: int) -> None:
        if self.events is None:
            return
        self.events.log_event(
            "notification_shown",
            {
                "urgency": urgency,
                "days_until_due": days_diff,
                "grouped": grouped,
                "count": count,
            },
        )
