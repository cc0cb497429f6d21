"""Tests for the reliability log."""

import json
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from duewatch.engine.reliability import ReliabilityLog

UTC = ZoneInfo("UTC")


def test_append_and_read_back():
    storage: dict[str, str] = {}
    log = ReliabilityLog(storage, "agent/1.0")
    now = datetime(2025, 1, 14, 10, 0, tzinfo=UTC)

    log.append(["a", "b"], "success", now)

    [entry] = log.entries()
    assert entry.timestamp == now
    assert entry.subscription_ids == ["a", "b"]
    assert entry.count == 2
    assert entry.status == "success"
    assert entry.user_agent == "agent/1.0"


def test_capped_at_limit_oldest_dropped():
    """Test the log keeps only the newest 100 entries."""
    storage: dict[str, str] = {}
    log = ReliabilityLog(storage, "agent")
    start = datetime(2025, 1, 1, tzinfo=UTC)

    for i in range(105):
        log.append([f"sub-{i}"], "success", start + timedelta(minutes=i))

    entries = log.entries()
    assert len(entries) == 100
    assert entries[0].subscription_ids == ["sub-5"]
    assert entries[-1].subscription_ids == ["sub-104"]
    assert len(json.loads(storage["reliabilityLog"])) == 100


def test_uses_clock_when_no_time_given():
    fixed = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)
    log = ReliabilityLog({}, "agent", clock=lambda: fixed)

    log.append(["a"], "blocked")

    assert log.entries()[0].timestamp == fixed


class BrokenStorage(dict):
    def __setitem__(self, key, value):
        raise OSError("quota exceeded")


def test_write_failure_is_swallowed():
    """Test a storage failure never reaches the caller."""
    log = ReliabilityLog(BrokenStorage(), "agent")

    log.append(["a"], "error")

    assert log.entries() == []


def test_corrupt_log_is_not_fatal():
    storage = {"reliabilityLog": "{not json"}
    log = ReliabilityLog(storage, "agent")

    log.append(["a"], "success")

    # Corrupt content is left untouched
    assert storage["reliabilityLog"] == "{not json"
