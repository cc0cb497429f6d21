"""Time and timezone utilities."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from duewatch.utils.constants import DEFAULT_NOTIFICATION_TIME

UTC = ZoneInfo("UTC")


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(ZoneInfo(tz))


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant ("2025-01-15T00:00:00.000Z") into an aware datetime."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(isoparse(value))


def to_iso(dt: datetime) -> str:
    """Format an instant as a UTC ISO string with millisecond precision."""
    utc = ensure_aware(dt).astimezone(UTC)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def payment_date(value: str | datetime) -> date:
    """Calendar date of a payment instant, as written.

    The date portion is never shifted into another zone, so a payment stored
    as "2025-01-15T00:00:00Z" is due on Jan 15 for users west of UTC too.
    """
    if isinstance(value, str):
        return date.fromisoformat(value.split("T")[0])
    return value.date()


def parse_time_of_day(value: str) -> time:
    """Parse an "HH:MM" string (24-hour).

    Values without a colon fall back to the default notification time.
    """
    if ":" not in value:
        value = DEFAULT_NOTIFICATION_TIME
    hours, minutes = (int(part) for part in value.split(":")[:2])
    return time(hours, minutes)


def local_today(now: datetime, tz: str) -> date:
    """Today's calendar date in the given timezone."""
    return from_utc(ensure_aware(now), tz).date()


def calendar_days_until(due: str | datetime, now: datetime, tz: str) -> int:
    """Calendar-day difference between a payment date and today (local)."""
    return (payment_date(due) - local_today(now, tz)).days


def is_valid_timezone(tz: str) -> bool:
    try:
        ZoneInfo(tz)
    except (KeyError, ValueError):
        return False
    return True


def format_relative_day(days: int) -> str:
    """Format a calendar-day difference.

    Examples:
        0 -> "today"
        1 -> "tomorrow"
        5 -> "in 5 days"
        -2 -> "2 days ago"
    """
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days < 0:
        return f"{-days} day{'s' if days != -1 else ''} ago"
    return f"in {days} days"

