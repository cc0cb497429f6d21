"""Database migration runner."""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS subscriptions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    amount REAL NOT NULL,
    currency TEXT NOT NULL,
    billing_cycle TEXT NOT NULL,
    custom_days INTEGER,
    next_payment_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    chat_id INTEGER,
    notifications_enabled INTEGER NOT NULL DEFAULT 0,
    notification_permission TEXT NOT NULL DEFAULT 'default',
    notification_days_before INTEGER NOT NULL DEFAULT 3,
    notification_time TEXT NOT NULL DEFAULT '09:00',
    timezone TEXT NOT NULL DEFAULT 'UTC',
    permission_denied_at TEXT,
    last_notification_check TEXT
);

CREATE TABLE IF NOT EXISTS notification_schedule (
    subscription_id TEXT PRIMARY KEY,
    scheduled_for TEXT NOT NULL,
    payment_due_at TEXT NOT NULL,
    notified_at TEXT
);

CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


async def init_database(db_path: Path) -> None:
    """Initialize the database with the schema."""
    async with aiosqlite.connect(db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()

        logger.info(f"Database initialized at {db_path}")


async def run_migrations(db_path: Path) -> None:
    """Run any pending migrations.

    Currently just ensures the database is initialized.
    Future migrations can be added as versioned functions.
    """
    await init_database(db_path)
