"""Hobbies: user activity records and weather-based recommendations

Database: data/hobbyweather.db
    - hobbies: activity records with weather and temperature preferences
"""

import sqlite3
from pathlib import Path

from hobbyweather import DB_PATH


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """
    Get database connection, creating the hobbies table if needed.

    Returns:
        SQLite connection with row_factory set
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row

    conn.execute("""
        CREATE TABLE IF NOT EXISTS hobbies (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            is_active BOOLEAN DEFAULT TRUE,
            is_outdoor BOOLEAN DEFAULT TRUE,
            preferred_weather TEXT DEFAULT '[]',
            preferred_time_of_day TEXT DEFAULT '[]',
            min_temperature REAL,
            max_temperature REAL,
            created_at DATETIME NOT NULL,
            updated_at DATETIME
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_hobbies_active ON hobbies(is_active)")
    conn.commit()

    return conn


__all__ = ["get_connection"]
