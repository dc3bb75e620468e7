"""Shared test fixtures for hobbyweather tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- A manual clock pinned to a known weekday
- A notification store wired to both

Usage:
    def test_something(store, clock):
        # store writes to a temporary database that is removed afterwards
        ...
"""

import os
import tempfile
from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest

from hobbyweather.notifications.models import NotificationSettings
from hobbyweather.notifications.store import NotificationStore
from tests.fakes import ManualClock


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "hobbyweather"

# Tuesday 3 March 2026, 12:00 local time
TUESDAY_NOON = datetime(2026, 3, 3, 12, 0)


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


# ─────────────────────────────────────────────────────────────────────────────
# Clock and Store Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at Tuesday noon."""
    return ManualClock(TUESDAY_NOON)


@pytest.fixture
def store(temp_db: Path, clock: ManualClock) -> NotificationStore:
    """Notification store without quiet hours and a cap of 10 per day."""
    return NotificationStore(
        db_path=temp_db,
        clock=clock,
        default_settings=NotificationSettings(quiet_hours=None, max_daily_notifications=10),
    )
