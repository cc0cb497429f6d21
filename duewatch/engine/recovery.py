"""Recovery of reminders that came due while the bot was not running."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from duewatch.db.models import NotificationScheduleEntry
from duewatch.db.stores import ScheduleRepository, SettingsProvider
from duewatch.engine.reliability import ReliabilityLog
from duewatch.utils.time_utils import ensure_aware, local_today, payment_date, utcnow

logger = logging.getLogger(__name__)


@dataclass
class RecoveryResult:
    """Outcome of one recovery run."""

    missed: List[NotificationScheduleEntry] = field(default_factory=list)
    stale_removed: int = 0

    @property
    def dates(self) -> List[str]:
        """Unique payment dates of the missed entries, in order."""
        seen: List[str] = []
        for entry in self.missed:
            day = payment_date(entry.payment_due_at).isoformat()
            if day not in seen:
                seen.append(day)
        return seen


class MissedNotificationRecovery:
    """Summarises missed reminders instead of firing them one by one."""

    def __init__(
        self,
        schedule: ScheduleRepository,
        settings: SettingsProvider,
        reliability_log: ReliabilityLog,
    ):
        self.schedule = schedule
        self.settings = settings
        self.reliability_log = reliability_log

    def get_missed_notifications(self, now: datetime) -> List[NotificationScheduleEntry]:
        """Entries whose time passed unnotified while the payment is still ahead."""
        today = local_today(now, self.settings.get_settings().timezone)
        return [
            entry
            for entry in self.schedule.get_schedule()
            if entry.notified_at is None
            and entry.scheduled_for < now
            and payment_date(entry.payment_due_at) >= today
        ]

    def get_stale_entries(self, now: datetime) -> List[NotificationScheduleEntry]:
        """Entries whose payment date is already behind us."""
        today = local_today(now, self.settings.get_settings().timezone)
        return [
            entry
            for entry in self.schedule.get_schedule()
            if payment_date(entry.payment_due_at) < today
        ]

    def cleanup_stale_entries(self, now: datetime) -> int:
        stale = {entry.subscription_id for entry in self.get_stale_entries(now)}
        if not stale:
            return 0

        cleaned = [
            entry for entry in self.schedule.get_schedule() if entry.subscription_id not in stale
        ]
        self.schedule.update_schedule(cleaned, now)
        logger.info(f"Cleaned up {len(stale)} stale schedule entries")
        return len(stale)

    def handle_missed_notifications(self, now: datetime) -> List[NotificationScheduleEntry]:
        missed = self.get_missed_notifications(now)

        if missed:
            ids = [entry.subscription_id for entry in missed]
            self.reliability_log.append(ids, "missed_recovery", now)
            self.schedule.mark_batch_as_notified(ids, now)
            logger.info(f"Recovered {len(missed)} missed notifications")

        self.settings.set_last_notification_check(now)
        return missed

    def run_recovery(self, now: datetime | None = None) -> RecoveryResult:
        now = ensure_aware(now) if now else utcnow()
        stale_removed = self.cleanup_stale_entries(now)
        missed = self.handle_missed_notifications(now)
        return RecoveryResult(missed=missed, stale_removed=stale_removed)
