"""Telegram chat as the notification surface."""

import logging
from collections import OrderedDict
from typing import Callable, List

from telegram import Bot
from telegram.error import Forbidden, TelegramError

from duewatch.bot.formatters import format_notification
from duewatch.bot.keyboards import notification_keyboard
from duewatch.db.models import NotificationOptions, PermissionState
from duewatch.engine.sink import Notification

logger = logging.getLogger(__name__)

# How many delivered notifications stay clickable
MAX_TRACKED_NOTIFICATIONS = 200


class TelegramNotificationSink:
    """Queues notifications for the owner chat.

    ``show`` is synchronous and only queues; the heartbeat delivers the queue
    with ``flush``. Permission is "default" until a chat is paired and
    "denied" once Telegram reports the bot as blocked.

    The queue lives in memory only. A notification that can't be delivered
    is handed back through ``flush``'s ``on_failure`` callback instead of
    being kept for a later retry.
    """

    supported = True

    def __init__(self, chat_id: int | None = None):
        self.chat_id = chat_id
        self.blocked = False
        self._outbox: List[Notification] = []
        self._tracked: "OrderedDict[str, Notification]" = OrderedDict()

    @property
    def permission(self) -> PermissionState:
        if self.chat_id is None:
            return "default"
        if self.blocked:
            return "denied"
        return "granted"

    def grant(self, chat_id: int) -> None:
        self.chat_id = chat_id
        self.blocked = False

    def show(self, title: str, options: NotificationOptions) -> Notification | None:
        if self.permission != "granted":
            return None

        notification = Notification(title, options)
        self._outbox.append(notification)

        self._tracked[notification.id] = notification
        while len(self._tracked) > MAX_TRACKED_NOTIFICATIONS:
            self._tracked.popitem(last=False)

        return notification

    def get(self, notification_id: str) -> Notification | None:
        return self._tracked.get(notification_id)

    @property
    def pending(self) -> List[Notification]:
        return list(self._outbox)

    async def flush(
        self,
        bot: Bot,
        on_failure: Callable[[Notification], None] | None = None,
    ) -> int:
        """Deliver queued notifications.

        Every queued notification is either sent or passed to ``on_failure``;
        the queue is empty afterwards.

        Returns:
            Number of messages sent
        """
        if not self._outbox:
            return 0

        queue, self._outbox = self._outbox, []
        failed: List[Notification] = []
        sent = 0

        for notification in queue:
            if notification.closed:
                continue

            if self.permission != "granted":
                failed.append(notification)
                continue

            try:
                await bot.send_message(
                    chat_id=self.chat_id,
                    text=format_notification(notification),
                    parse_mode="HTML",
                    reply_markup=notification_keyboard(notification.id),
                )
                sent += 1

            except Forbidden as e:
                logger.warning(f"Bot blocked by chat {self.chat_id}: {e}")
                self.blocked = True
                failed.append(notification)

            except TelegramError as e:
                logger.error(f"Failed to send notification {notification.id}: {e}")
                failed.append(notification)

        for notification in failed:
            self._tracked.pop(notification.id, None)
            if on_failure is not None:
                on_failure(notification)

        return sent
