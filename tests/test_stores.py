"""Tests for the in-memory stores."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from duewatch.db.models import NotificationScheduleEntry, Subscription
from duewatch.db.stores import ScheduleStore, SettingsStore, SubscriptionStore, UIStore

UTC = ZoneInfo("UTC")


def make_entry(sub_id: str, day: int, notified_at: datetime | None = None):
    return NotificationScheduleEntry(
        subscription_id=sub_id,
        scheduled_for=datetime(2025, 1, day, 9, 0, tzinfo=UTC),
        payment_due_at=datetime(2025, 1, day + 3, tzinfo=UTC),
        notified_at=notified_at,
    )


def test_subscription_store():
    """Test add, prefix lookup and delete."""
    store = SubscriptionStore()
    sub = Subscription(
        "abc123", "Netflix", 9.99, "USD", "monthly", datetime(2025, 1, 15, tzinfo=UTC)
    )
    store.add(sub)

    with pytest.raises(ValueError):
        store.add(sub)

    assert store.find_by_prefix("abc") is sub
    assert store.find_by_prefix("zzz") is None

    assert store.delete("abc123") is sub
    assert store.get_subscription_by_id("abc123") is None
    assert store.delete("abc123") is None


def test_subscription_store_prefix_ambiguous():
    store = SubscriptionStore(
        [
            Subscription("ab1", "A", 1.0, "USD", "monthly", datetime(2025, 1, 15, tzinfo=UTC)),
            Subscription("ab2", "B", 1.0, "USD", "monthly", datetime(2025, 1, 15, tzinfo=UTC)),
        ]
    )

    assert store.find_by_prefix("ab") is None
    assert store.find_by_prefix("ab2").name == "B"


def test_settings_store_validation():
    """Test setters reject out-of-range values."""
    store = SettingsStore()

    store.set_notification_days_before(7)
    assert store.get_settings().notification_days_before == 7
    with pytest.raises(ValueError):
        store.set_notification_days_before(0)
    with pytest.raises(ValueError):
        store.set_notification_days_before(31)

    store.set_notification_time("7:05")
    assert store.get_settings().notification_time == "07:05"
    with pytest.raises(ValueError):
        store.set_notification_time("0900")
    with pytest.raises(ValueError):
        store.set_notification_time("24:00")

    store.set_timezone("Europe/Istanbul")
    with pytest.raises(ValueError):
        store.set_timezone("Nowhere/Land")
    assert store.get_settings().timezone == "Europe/Istanbul"


def test_schedule_store_rejects_duplicates():
    """Test a schedule with two entries for one subscription is refused."""
    store = ScheduleStore([make_entry("a", 10)])

    assert not store.update_schedule([make_entry("b", 10), make_entry("b", 11)])
    assert [entry.subscription_id for entry in store.get_schedule()] == ["a"]


def test_schedule_store_mark_batch():
    """Test batch marking stamps pending entries only."""
    earlier = datetime(2025, 1, 1, tzinfo=UTC)
    now = datetime(2025, 1, 10, 9, 5, tzinfo=UTC)
    store = ScheduleStore([make_entry("a", 10), make_entry("b", 10), make_entry("c", 10, earlier)])

    assert store.mark_batch_as_notified(["a", "c", "missing"], now) == 1

    assert store.get_entry_by_subscription_id("a").notified_at == now
    assert store.get_entry_by_subscription_id("b").notified_at is None
    assert store.get_entry_by_subscription_id("c").notified_at == earlier
    assert [entry.subscription_id for entry in store.get_pending_notifications()] == ["b"]


def test_schedule_store_snapshots_are_stale():
    """Test entries read before a write do not change afterwards."""
    store = ScheduleStore([make_entry("a", 10)])
    snapshot = store.get_pending_notifications()

    store.mark_batch_as_notified(["a"], datetime(2025, 1, 10, 9, 5, tzinfo=UTC))

    assert snapshot[0].notified_at is None
    assert store.get_entry_by_subscription_id("a").notified_at is not None


def test_schedule_store_carry_over_only_same_occurrence():
    """Test notified_at survives recalculation only for the same payment."""
    stamp = datetime(2025, 1, 10, 9, 5, tzinfo=UTC)
    store = ScheduleStore([make_entry("a", 10, stamp), make_entry("b", 10, stamp)])

    moved = NotificationScheduleEntry(
        "b",
        datetime(2025, 2, 10, 9, 0, tzinfo=UTC),
        datetime(2025, 2, 13, tzinfo=UTC),
    )
    assert store.update_schedule([make_entry("a", 10), moved])

    assert store.get_entry_by_subscription_id("a").notified_at == stamp
    assert store.get_entry_by_subscription_id("b").notified_at is None


def test_ui_store():
    ui = UIStore()
    ui.focus()
    ui.open_modal("editSubscription", "abc")
    assert ui.focused
    assert ui.editing_subscription_id == "abc"

    ui.close_modal()
    ui.set_date_filter("2025-01-15")
    assert ui.active_modal is None
    assert ui.date_filter == "2025-01-15"

    ui.reset()
    assert not ui.focused
    assert ui.date_filter is None


def test_schedule_store_mark_batch_as_pending():
    """Test re-arming clears the stamp only on stamped entries in the batch."""
    stamp = datetime(2025, 1, 10, 9, 5, tzinfo=UTC)
    store = ScheduleStore(
        [make_entry("a", 10, stamp), make_entry("b", 10, stamp), make_entry("c", 10)]
    )

    assert store.mark_batch_as_pending(["a", "c"]) == 1

    assert store.get_entry_by_subscription_id("a").notified_at is None
    assert store.get_entry_by_subscription_id("b").notified_at == stamp
    assert [e.subscription_id for e in store.get_pending_notifications()] == ["a", "c"]
