"""Notifications: scheduling and evaluation engine

Decides when to re-check conditions, what is worth notifying across the
three notification families (high-score hobby match, sudden weather
alert, periodic report), and how to avoid over-notifying while honouring
quiet hours, daily caps and per-type schedules.

Components:
    models.py: configs, history, settings, scheduled tasks
    store.py: configuration store and sending policy
    dispatcher.py: user-facing delivery (log, webhook)
    evaluators/: one evaluator per notification type
    scheduler.py: armed tasks, next-run computation, execution
    lifecycle.py: start/stop and default seeding

Database: data/hobbyweather.db
    - notification_configs: user-editable rules
    - notification_history: sent notifications
    - notification_subjects: dedup keys per history row
    - notification_settings: singleton global policy
"""

import sqlite3
from pathlib import Path

from hobbyweather import DB_PATH


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """
    Get database connection, creating tables if needed.

    Returns:
        SQLite connection with row_factory set
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notification_configs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            enabled BOOLEAN DEFAULT TRUE,
            priority TEXT NOT NULL DEFAULT 'medium',
            schedule TEXT NOT NULL,
            conditions TEXT DEFAULT '{}',
            created_at DATETIME NOT NULL,
            updated_at DATETIME
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notification_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            config_id INTEGER NOT NULL REFERENCES notification_configs(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            sent_at DATETIME NOT NULL,
            clicked BOOLEAN DEFAULT FALSE,
            dismissed BOOLEAN DEFAULT FALSE,
            data TEXT DEFAULT '{}'
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notification_subjects (
            history_id INTEGER NOT NULL REFERENCES notification_history(id) ON DELETE CASCADE,
            subject_key TEXT NOT NULL,
            PRIMARY KEY (history_id, subject_key)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notification_settings (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            global_enabled BOOLEAN DEFAULT TRUE,
            quiet_hours TEXT,
            max_daily_notifications INTEGER DEFAULT 10,
            sound_enabled BOOLEAN DEFAULT TRUE,
            vibration_enabled BOOLEAN DEFAULT TRUE,
            updated_at DATETIME NOT NULL
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_configs_type ON notification_configs(type)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_configs_enabled ON notification_configs(enabled)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_sent ON notification_history(sent_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_config ON notification_history(config_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_type_sent ON notification_history(type, sent_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_subjects_key ON notification_subjects(subject_key)")

    conn.commit()
    return conn


__all__ = ["get_connection"]
