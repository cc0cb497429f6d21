"""Anonymized event log sink."""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def log_event(self, event_type: str, metadata: dict[str, Any]) -> None: ...


class LoggingEventSink:
    """Writes events to the application log.

    Callers only pass counts and classifications; no names or amounts.
    """

    def log_event(self, event_type: str, metadata: dict[str, Any]) -> None:
        details = " ".join(f"{key}={value}" for key, value in sorted(metadata.items()))
        logger.info(f"event={event_type} {details}".rstrip())
