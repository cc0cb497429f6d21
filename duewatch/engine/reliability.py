"""Bounded, append-only log of dispatch attempts."""

import json
import logging
from datetime import datetime
from typing import Callable, Iterable, List, MutableMapping

from duewatch.db.models import ReliabilityLogEntry, ReliabilityStatus
from duewatch.utils.constants import RELIABILITY_LOG_KEY, RELIABILITY_LOG_LIMIT
from duewatch.utils.time_utils import parse_instant, to_iso, utcnow

logger = logging.getLogger(__name__)


class ReliabilityLog:
    """Stores entries as JSON under a fixed key, oldest dropped first.

    Writing is best-effort: a failure is logged and never reaches the caller.
    """

    def __init__(
        self,
        storage: MutableMapping[str, str],
        user_agent: str,
        limit: int = RELIABILITY_LOG_LIMIT,
        key: str = RELIABILITY_LOG_KEY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.user_agent = user_agent
        self.limit = limit
        self.key = key
        self.clock = clock

    def append(
        self,
        subscription_ids: Iterable[str],
        status: ReliabilityStatus,
        now: datetime | None = None,
    ) -> None:
        ids = list(subscription_ids)
        try:
            raw = self.storage.get(self.key)
            log = json.loads(raw) if raw else []

            log.append(
                {
                    "timestamp": to_iso(now or self.clock()),
                    "subscriptionIds": ids,
                    "count": len(ids),
                    "status": status,
                    "userAgent": self.user_agent,
                }
            )

            if len(log) > self.limit:
                log = log[-self.limit:]

            self.storage[self.key] = json.dumps(log)
        except Exception as e:
            logger.error(f"Failed to write reliability log: {e}")

    def entries(self) -> List[ReliabilityLogEntry]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        return [
            ReliabilityLogEntry(
                timestamp=parse_instant(item["timestamp"]),
                subscription_ids=list(item["subscriptionIds"]),
                count=item["count"],
                status=item["status"],
                user_agent=item["userAgent"],
            )
            for item in json.loads(raw)
        ]
