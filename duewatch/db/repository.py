"""Database repository - all SQL queries."""

import logging
from pathlib import Path
from typing import List

import aiosqlite

from duewatch.db.models import NotificationScheduleEntry, ScheduleSettings, Subscription
from duewatch.utils.time_utils import parse_instant, to_iso

logger = logging.getLogger(__name__)


class Repository:
    """Database access layer."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # Subscription operations

    async def get_subscriptions(self) -> List[Subscription]:
        """Get all subscriptions, oldest first."""
        async with self.db.execute(
            "SELECT * FROM subscriptions ORDER BY created_at, rowid"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_subscription(row) for row in rows]

    async def save_subscription(self, subscription: Subscription) -> None:
        """Insert or update a subscription."""
        await self.db.execute(
            """
            INSERT INTO subscriptions (
                id, name, amount, currency, billing_cycle, custom_days,
                next_payment_date, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                amount = excluded.amount,
                currency = excluded.currency,
                billing_cycle = excluded.billing_cycle,
                custom_days = excluded.custom_days,
                next_payment_date = excluded.next_payment_date,
                is_active = excluded.is_active,
                updated_at = datetime('now')
            """,
            (
                subscription.id,
                subscription.name,
                subscription.amount,
                subscription.currency,
                subscription.billing_cycle,
                subscription.custom_days,
                subscription.next_payment_date.isoformat(),
                1 if subscription.is_active else 0,
            ),
        )
        await self.db.commit()

    async def delete_subscription(self, subscription_id: str) -> None:
        """Delete a subscription."""
        await self.db.execute("DELETE FROM subscriptions WHERE id = ?", (subscription_id,))
        await self.db.commit()

    # Settings operations

    async def get_settings(self) -> ScheduleSettings | None:
        """Get the owner settings, if saved."""
        async with self.db.execute("SELECT * FROM settings WHERE id = 1") as cursor:
            row = await cursor.fetchone()
            if row:
                return ScheduleSettings(
                    chat_id=row["chat_id"],
                    notifications_enabled=bool(row["notifications_enabled"]),
                    notification_permission=row["notification_permission"],
                    notification_days_before=row["notification_days_before"],
                    notification_time=row["notification_time"],
                    timezone=row["timezone"],
                    permission_denied_at=parse_instant(row["permission_denied_at"])
                    if row["permission_denied_at"]
                    else None,
                    last_notification_check=parse_instant(row["last_notification_check"])
                    if row["last_notification_check"]
                    else None,
                )
            return None

    async def save_settings(self, settings: ScheduleSettings) -> None:
        """Save the owner settings."""
        await self.db.execute(
            """
            INSERT INTO settings (
                id, chat_id, notifications_enabled, notification_permission,
                notification_days_before, notification_time, timezone,
                permission_denied_at, last_notification_check
            ) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                chat_id = excluded.chat_id,
                notifications_enabled = excluded.notifications_enabled,
                notification_permission = excluded.notification_permission,
                notification_days_before = excluded.notification_days_before,
                notification_time = excluded.notification_time,
                timezone = excluded.timezone,
                permission_denied_at = excluded.permission_denied_at,
                last_notification_check = excluded.last_notification_check
            """,
            (
                settings.chat_id,
                1 if settings.notifications_enabled else 0,
                settings.notification_permission,
                settings.notification_days_before,
                settings.notification_time,
                settings.timezone,
                to_iso(settings.permission_denied_at) if settings.permission_denied_at else None,
                to_iso(settings.last_notification_check)
                if settings.last_notification_check
                else None,
            ),
        )
        await self.db.commit()

    # Schedule operations

    async def get_schedule(self) -> List[NotificationScheduleEntry]:
        """Get the stored schedule, earliest first."""
        async with self.db.execute(
            "SELECT * FROM notification_schedule ORDER BY scheduled_for"
        ) as cursor:
            rows = await cursor.fetchall()
            return [
                NotificationScheduleEntry(
                    subscription_id=row["subscription_id"],
                    scheduled_for=parse_instant(row["scheduled_for"]),
                    payment_due_at=parse_instant(row["payment_due_at"]),
                    notified_at=parse_instant(row["notified_at"]) if row["notified_at"] else None,
                )
                for row in rows
            ]

    async def replace_schedule(self, entries: List[NotificationScheduleEntry]) -> None:
        """Replace the stored schedule in one transaction."""
        await self.db.execute("DELETE FROM notification_schedule")
        await self.db.executemany(
            """
            INSERT INTO notification_schedule (
                subscription_id, scheduled_for, payment_due_at, notified_at
            ) VALUES (?, ?, ?, ?)
            """,
            [
                (
                    entry.subscription_id,
                    to_iso(entry.scheduled_for),
                    # Keep the payment's own offset so its calendar date survives
                    entry.payment_due_at.isoformat(),
                    to_iso(entry.notified_at) if entry.notified_at else None,
                )
                for entry in entries
            ],
        )
        await self.db.commit()

    # Key/value operations

    async def get_values(self) -> dict[str, str]:
        """Get every stored key/value pair."""
        async with self.db.execute("SELECT key, value FROM kv_store") as cursor:
            rows = await cursor.fetchall()
            return {row["key"]: row["value"] for row in rows}

    async def set_value(self, key: str, value: str) -> None:
        await self.db.execute(
            """
            INSERT INTO kv_store (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        await self.db.commit()

    # Helper methods

    def _row_to_subscription(self, row: aiosqlite.Row) -> Subscription:
        """Convert a database row to a Subscription object."""
        return Subscription(
            id=row["id"],
            name=row["name"],
            amount=row["amount"],
            currency=row["currency"],
            billing_cycle=row["billing_cycle"],
            custom_days=row["custom_days"],
            next_payment_date=parse_instant(row["next_payment_date"]),
            is_active=bool(row["is_active"]),
        )
