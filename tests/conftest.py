"""Shared test doubles."""

from datetime import datetime
from typing import List
from zoneinfo import ZoneInfo

import pytest

from duewatch.db.models import NotificationOptions, ScheduleSettings
from duewatch.db.stores import ScheduleStore, SettingsStore, SubscriptionStore, UIStore
from duewatch.engine.dispatcher import DispatchEngine
from duewatch.engine.reliability import ReliabilityLog
from duewatch.engine.renderer import NotificationRenderer
from duewatch.engine.sink import Notification


class RecordingSink:
    """Notification sink that keeps everything it shows."""

    supported = True

    def __init__(self, permission: str = "granted"):
        self.permission = permission
        self.shown: List[Notification] = []

    def show(self, title: str, options: NotificationOptions) -> Notification | None:
        if self.permission != "granted":
            return None
        notification = Notification(title, options)
        self.shown.append(notification)
        return notification


class RecordingEvents:
    def __init__(self):
        self.events: List[tuple] = []

    def log_event(self, event_type, metadata):
        self.events.append((event_type, metadata))


class Engine:
    """A dispatch engine wired to in-memory stores."""

    def __init__(self, settings: ScheduleSettings | None = None):
        self.subscriptions = SubscriptionStore()
        self.settings = SettingsStore(
            settings
            or ScheduleSettings(
                notifications_enabled=True, notification_permission="granted", chat_id=1
            )
        )
        self.schedule = ScheduleStore()
        self.ui = UIStore()
        self.storage: dict[str, str] = {}
        self.sink = RecordingSink()
        self.events = RecordingEvents()
        self.reliability_log = ReliabilityLog(self.storage, "pytest")
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


@pytest.fixture
def engine() -> Engine:
    return Engine()


@pytest.fixture
def utc() -> ZoneInfo:
    return ZoneInfo("UTC")


@pytest.fixture
def now(utc) -> datetime:
    return datetime(2025, 1, 14, 10, 0, tzinfo=utc)
