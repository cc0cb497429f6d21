"""Notification surface interface and the handle it returns."""

from typing import Callable, Protocol
from uuid import uuid4

from duewatch.db.models import NotificationOptions, PermissionState


class Notification:
    """A shown notification.

    Register a click handler by assigning ``on_click``.
    """

    def __init__(self, title: str, options: NotificationOptions):
        self.id = uuid4().hex[:16]
        self.title = title
        self.options = options
        self.on_click: Callable[[], None] | None = None
        self.closed = False

    @property
    def tag(self) -> str:
        return self.options.tag

    def click(self) -> bool:
        """Run the click handler. Returns False if there was nothing to run."""
        if self.closed or self.on_click is None:
            return False
        self.on_click()
        return True

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"Notification(id={self.id!r}, tag={self.tag!r}, title={self.title!r})"


class NotificationSink(Protocol):
    """Where notifications are shown."""

    @property
    def supported(self) -> bool: ...

    @property
    def permission(self) -> PermissionState: ...

    def show(self, title: str, options: NotificationOptions) -> Notification | None: ...


class BackgroundNotificationSink(Protocol):
    """Secondary surface that keeps a notification around in the background."""

    @property
    def ready(self) -> bool: ...

    def show(self, title: str, options: NotificationOptions) -> None: ...
