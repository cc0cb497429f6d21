"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from duewatch.utils.constants import (
    DEFAULT_DAYS_BEFORE,
    DEFAULT_NOTIFICATION_TIME,
    DEFAULT_TIMEZONE,
)


BillingCycle = Literal["weekly", "monthly", "yearly", "custom"]
PermissionState = Literal["default", "granted", "denied"]
ReliabilityStatus = Literal["success", "blocked", "error", "missed_recovery"]
Urgency = Literal["standard", "imminent"]


@dataclass
class Subscription:
    """A recurring payment."""

    id: str
    name: str
    amount: float
    currency: str
    billing_cycle: BillingCycle
    next_payment_date: datetime  # only the next occurrence
    is_active: bool = True
    custom_days: int | None = None  # billing_cycle == "custom"


@dataclass
class ScheduleSettings:
    """Owner settings that drive notification scheduling."""

    notifications_enabled: bool = False
    notification_permission: PermissionState = "default"
    notification_days_before: int = DEFAULT_DAYS_BEFORE
    notification_time: str = DEFAULT_NOTIFICATION_TIME  # HH:MM format
    timezone: str = DEFAULT_TIMEZONE
    chat_id: int | None = None
    permission_denied_at: datetime | None = None
    last_notification_check: datetime | None = None


@dataclass(frozen=True)
class NotificationScheduleEntry:
    """When a subscription's reminder fires, and whether it already has."""

    subscription_id: str
    scheduled_for: datetime
    payment_due_at: datetime
    notified_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.notified_at is None


@dataclass
class ReliabilityLogEntry:
    """Audit trail of one dispatch attempt."""

    timestamp: datetime
    subscription_ids: list[str]
    count: int
    status: ReliabilityStatus
    user_agent: str


@dataclass
class NotificationOptions:
    """Everything a notification surface needs besides the title."""

    body: str
    tag: str
    icon: str
    badge: str
    vibrate: list[int] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
