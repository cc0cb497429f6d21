"""Application container wiring stores, engine and delivery together."""

import logging
import platform
from typing import List

from duewatch.bot.telegram_sink import TelegramNotificationSink
from duewatch.db.models import ScheduleSettings
from duewatch.db.repository import Repository
from duewatch.db.stores import ScheduleStore, SettingsStore, SubscriptionStore, UIStore
from duewatch.engine.aggregator import ScheduleSynchronizer
from duewatch.engine.dispatcher import DispatchEngine
from duewatch.engine.events import LoggingEventSink
from duewatch.engine.recovery import MissedNotificationRecovery
from duewatch.engine.reliability import ReliabilityLog
from duewatch.engine.renderer import NotificationRenderer
from duewatch.utils.constants import APP_VERSION

logger = logging.getLogger(__name__)


def default_user_agent() -> str:
    return (
        f"duewatch/{APP_VERSION} "
        f"({platform.system()}; Python {platform.python_version()})"
    )


class DueWatch:
    """Everything one owner's bot needs, held in memory.

    State is loaded from the repository at startup and written back after
    every change or heartbeat.
    """

    def __init__(self, default_timezone: str = "UTC"):
        self.subscriptions = SubscriptionStore()
        self.settings = SettingsStore(ScheduleSettings(timezone=default_timezone))
        self.schedule = ScheduleStore()
        self.ui = UIStore()
        self.storage: dict[str, str] = {}

        self.sink = TelegramNotificationSink()
        self.events = LoggingEventSink()
        self.reliability_log = ReliabilityLog(self.storage, default_user_agent())

        self.renderer = NotificationRenderer(self.sink, self.settings, self.ui, self.events)
        self.dispatcher = DispatchEngine(
            self.subscriptions,
            self.settings,
            self.schedule,
            self.renderer,
            self.reliability_log,
            self.sink,
            self.events,
        )
        self.synchronizer = ScheduleSynchronizer(self.subscriptions, self.settings, self.schedule)
        self.recovery = MissedNotificationRecovery(
            self.schedule, self.settings, self.reliability_log
        )

        # Payment dates from the last recovery run, for the "View" button
        self.last_missed_dates: List[str] = []

    async def load(self, repo: Repository) -> None:
        """Hydrate the stores from the database."""
        for subscription in await repo.get_subscriptions():
            self.subscriptions.add(subscription)

        settings = await repo.get_settings()
        if settings is not None:
            self.settings.replace(settings)
            if settings.chat_id is not None:
                self.sink.chat_id = settings.chat_id
                # A denied permission stays denied until the owner sends /start
                self.sink.blocked = settings.notification_permission == "denied"

        self.schedule.update_schedule(await repo.get_schedule())
        self.storage.update(await repo.get_values())

        logger.info(
            f"Loaded {len(self.subscriptions.list_subscriptions())} subscriptions, "
            f"{len(self.schedule.get_schedule())} schedule entries"
        )

    async def save(self, repo: Repository) -> None:
        """Write settings, schedule and the reliability log back."""
        await repo.save_settings(self.settings.get_settings())
        await repo.replace_schedule(self.schedule.get_schedule())
        for key, value in self.storage.items():
            await repo.set_value(key, value)
