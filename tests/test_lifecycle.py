"""Tests for the heartbeat and startup recovery."""

import asyncio
from datetime import timedelta

from telegram.error import Forbidden, NetworkError

from duewatch.app import DueWatch
from duewatch.db.migrations import run_migrations
from duewatch.db.models import NotificationScheduleEntry, ScheduleSettings, Subscription
from duewatch.db.repository import Repository
from duewatch.engine.lifecycle import heartbeat, startup_recovery
from duewatch.utils.time_utils import payment_date, utcnow


class FakeBot:
    def __init__(self, fail_with=None):
        self.sent = []
        self.attempts = 0
        self.fail_with = fail_with

    async def send_message(self, **kwargs):
        self.attempts += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(kwargs)


async def open_repo(path) -> Repository:
    await run_migrations(path)
    repo = Repository(path)
    await repo.connect()
    return repo


async def paired_app(repo: Repository, subscription: Subscription) -> DueWatch:
    app = DueWatch()
    app.settings.replace(
        ScheduleSettings(
            notifications_enabled=True,
            notification_permission="granted",
            notification_time="00:00",
            chat_id=1,
        )
    )
    app.sink.grant(1)
    app.subscriptions.add(subscription)
    await repo.save_subscription(subscription)
    return app


def make_subscription(sub_id: str, due) -> Subscription:
    return Subscription(sub_id, f"Service {sub_id}", 9.99, "USD", "monthly", due)


def statuses(app: DueWatch) -> list:
    return [entry.status for entry in app.reliability_log.entries()]


def test_heartbeat_delivers_due_reminder(tmp_path):
    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            now = utcnow()
            sub = make_subscription("a", now + timedelta(days=1))
            app = await paired_app(repo, sub)
            app.schedule.update_schedule(
                [NotificationScheduleEntry("a", now - timedelta(hours=1), sub.next_payment_date)]
            )
            bot = FakeBot()

            await heartbeat(bot, app, repo)

            assert len(bot.sent) == 1
            assert bot.sent[0]["chat_id"] == 1
            assert app.schedule.get_pending_notifications() == []
            assert statuses(app) == ["success"]

            [saved] = await repo.get_schedule()
            assert saved.notified_at is not None
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_blocked_delivery_survives_restart(tmp_path):
    """Test a reminder Telegram refused is re-armed, not lost across a restart."""
    path = tmp_path / "test.db"

    async def scenario():
        repo = await open_repo(path)
        try:
            now = utcnow()
            sub = make_subscription("a", now + timedelta(days=1))
            app = await paired_app(repo, sub)
            app.schedule.update_schedule(
                [NotificationScheduleEntry("a", now - timedelta(hours=1), sub.next_payment_date)]
            )
            blocked = FakeBot(Forbidden("bot was blocked by the user"))

            await heartbeat(blocked, app, repo)

            assert blocked.attempts == 1
            assert statuses(app) == ["success", "blocked"]
            # The denial was picked up after delivery, which clears the schedule
            settings = app.settings.get_settings()
            assert settings.notification_permission == "denied"
            assert settings.permission_denied_at is not None
            assert app.sink.pending == []
            assert all(entry.notified_at is None for entry in await repo.get_schedule())

            restored = DueWatch()
            await restored.load(repo)
            assert restored.sink.permission == "denied"
            assert statuses(restored) == ["success", "blocked"]

            # Owner unblocks the bot and sends /start again
            restored.sink.grant(1)
            restored.dispatcher.sync_notification_permissions()
            restored.synchronizer.recalculate(utcnow() - timedelta(seconds=1))

            bot = FakeBot()
            await heartbeat(bot, restored, repo)

            assert len(bot.sent) == 1
            assert restored.schedule.get_pending_notifications() == []
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_network_error_retried_next_heartbeat(tmp_path):
    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            now = utcnow()
            sub = make_subscription("a", now + timedelta(days=1))
            app = await paired_app(repo, sub)
            app.schedule.update_schedule(
                [NotificationScheduleEntry("a", now - timedelta(hours=1), sub.next_payment_date)]
            )

            await heartbeat(FakeBot(NetworkError("timeout")), app, repo)

            assert app.sink.permission == "granted"
            assert [e.subscription_id for e in app.schedule.get_pending_notifications()] == ["a"]

            bot = FakeBot()
            await heartbeat(bot, app, repo)

            assert len(bot.sent) == 1
            assert statuses(app) == ["success", "blocked", "success"]
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_startup_recovery_summarises_before_recalculating(tmp_path):
    """Test reminders missed while offline are summarised, not fired one by one."""

    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            now = utcnow()
            sub = make_subscription("a", now + timedelta(days=2))
            app = await paired_app(repo, sub)
            app.schedule.update_schedule(
                [
                    NotificationScheduleEntry("a", now - timedelta(days=1), sub.next_payment_date),
                    NotificationScheduleEntry(
                        "old", now - timedelta(days=6), now - timedelta(days=3)
                    ),
                ]
            )
            bot = FakeBot()

            await startup_recovery(bot, app, repo)

            [summary] = bot.sent
            assert "You missed 1 payment reminders" in summary["text"]
            assert summary["reply_markup"].inline_keyboard[0][0].callback_data == "missed"
            assert app.last_missed_dates == [payment_date(sub.next_payment_date).isoformat()]

            assert statuses(app) == ["missed_recovery"]
            # Recalculation keeps the recovered entry stamped
            assert [e.subscription_id for e in app.schedule.get_schedule()] == ["a"]
            assert app.schedule.get_pending_notifications() == []

            # And the heartbeat doesn't send it again
            await heartbeat(bot, app, repo)
            assert len(bot.sent) == 1
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_startup_recovery_nothing_missed(tmp_path):
    async def scenario():
        repo = await open_repo(tmp_path / "test.db")
        try:
            now = utcnow()
            sub = make_subscription("a", now + timedelta(days=20))
            app = await paired_app(repo, sub)
            bot = FakeBot()

            await startup_recovery(bot, app, repo)

            assert bot.sent == []
            assert app.last_missed_dates == []
            assert [e.subscription_id for e in app.schedule.get_pending_notifications()] == ["a"]
            assert app.settings.get_settings().last_notification_check is not None
        finally:
            await repo.close()

    asyncio.run(scenario())
