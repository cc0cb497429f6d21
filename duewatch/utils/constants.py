"""Constants and default values."""

from dataclasses import dataclass, field

APP_VERSION = "0.1.0"


@dataclass
class UrgencyProfile:
    """Presentation settings for one urgency level."""

    name: str
    vibrate: list[int] = field(default_factory=list)
    emoji: str = "🔔"


# Payments due within this many calendar days are "imminent"
IMMINENT_PAYMENT_DAYS = 3

URGENCY_PROFILES = {
    "standard": UrgencyProfile("standard", [200], "🔔"),
    "imminent": UrgencyProfile("imminent", [200, 100, 200], "🚨"),
}

# Notification settings defaults
DEFAULT_NOTIFICATION_TIME = "09:00"
DEFAULT_DAYS_BEFORE = 3
MIN_DAYS_BEFORE = 1
MAX_DAYS_BEFORE = 30

# Default timezone
DEFAULT_TIMEZONE = "UTC"

# Notification assets
NOTIFICATION_ICON = "/icons/android-chrome-192x192.png"
NOTIFICATION_BADGE = "/icons/badge-72x72.png"

# Reliability log
RELIABILITY_LOG_KEY = "reliabilityLog"
RELIABILITY_LOG_LIMIT = 100

BILLING_CYCLES = ("weekly", "monthly", "yearly", "custom")

CURRENCY_SYMBOLS = {
    "TRY": "₺",
    "USD": "$",
    "EUR": "€",
}

NOTIFICATION_STRINGS = {
    "single_title": "Upcoming payment: {name}",
    "single_body": "{amount} payment due {when}.",
    "grouped_title": "Upcoming payments",
    "grouped_body": "{count} payments due {when} — total {total}",
    "today": "today",
    "tomorrow": "tomorrow",
    "in_days": "in {days} days",
    "overdue": "overdue",
    "missed": "You missed {count} payment reminders",
    "missed_action": "View",
}
