"""Tests for the SQLite repository and app persistence."""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

from duewatch.app import DueWatch
from duewatch.db.migrations import run_migrations
from duewatch.db.models import NotificationScheduleEntry, ScheduleSettings, Subscription
from duewatch.db.repository import Repository

UTC = ZoneInfo("UTC")


async def open_repo(path) -> Repository:
    await run_migrations(path)
    repo = Repository(path)
    await repo.connect()
    return repo


def test_subscription_round_trip(tmp_path):
    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            sub = Subscription(
                "abc", "Spotify", 59.99, "TRY", "custom",
                datetime(2025, 1, 15, tzinfo=UTC), custom_days=14,
            )
            await repo.save_subscription(sub)

            sub.is_active = False
            await repo.save_subscription(sub)

            [loaded] = await repo.get_subscriptions()
            assert loaded == sub

            await repo.delete_subscription("abc")
            assert await repo.get_subscriptions() == []
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_settings_and_schedule_round_trip(tmp_path):
    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            assert await repo.get_settings() is None

            settings = ScheduleSettings(
                notifications_enabled=True,
                notification_permission="granted",
                notification_days_before=5,
                notification_time="08:30",
                timezone="Europe/Istanbul",
                chat_id=42,
                last_notification_check=datetime(2025, 1, 14, 10, 0, tzinfo=UTC),
            )
            await repo.save_settings(settings)
            assert await repo.get_settings() == settings

            entries = [
                NotificationScheduleEntry(
                    "a",
                    datetime(2025, 1, 12, 6, 0, tzinfo=UTC),
                    datetime(2025, 1, 15, tzinfo=UTC),
                    notified_at=datetime(2025, 1, 12, 6, 1, tzinfo=UTC),
                )
            ]
            await repo.replace_schedule(entries)
            assert await repo.get_schedule() == entries

            await repo.replace_schedule([])
            assert await repo.get_schedule() == []
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_app_save_and_load(tmp_path):
    """Test a restarted app comes back with the same state."""
    path = tmp_path / "test.db"

    async def scenario():
        repo = await open_repo(path)
        try:
            app = DueWatch()
            app.settings.replace(
                ScheduleSettings(
                    notifications_enabled=True, notification_permission="denied", chat_id=7
                )
            )
            sub = Subscription(
                "abc", "Netflix", 9.99, "USD", "monthly", datetime(2025, 1, 15, tzinfo=UTC)
            )
            app.subscriptions.add(sub)
            await repo.save_subscription(sub)
            app.reliability_log.append(["abc"], "blocked")
            await app.save(repo)

            restored = DueWatch()
            await restored.load(repo)

            assert restored.subscriptions.get_subscription_by_id("abc") == sub
            assert restored.settings.get_settings().chat_id == 7
            assert restored.sink.permission == "denied"
            assert [e.status for e in restored.reliability_log.entries()] == ["blocked"]
        finally:
            await repo.close()

    asyncio.run(scenario())
