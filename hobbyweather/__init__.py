"""
Hobbyweather: weather-aware hobby planning and notification engine

Cross-references a user's hobbies with the weather forecast, recommends
the best days for each activity, and proactively notifies when conditions
line up.

Components:
- weather/: forecast data model and OpenWeather provider
- hobbies/: hobby records and the recommendation scorer
- notifications/: configuration store, evaluators, scheduler, lifecycle
- cli.py: operator CLI and daemon entry point

Usage:
    from hobbyweather.notifications.lifecycle import build_manager

    manager = build_manager()
    await manager.initialize()
"""

import os
from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "notifications.yaml"

# Database path (override with HOBBYWEATHER_DB_PATH)
DB_PATH = Path(os.environ.get("HOBBYWEATHER_DB_PATH", str(DATA_DIR / "hobbyweather.db")))

__version__ = "0.1.0"

__all__ = [
    "PROJECT_ROOT",
    "PACKAGE_ROOT",
    "DATA_DIR",
    "ARGS_DIR",
    "CONFIG_PATH",
    "DB_PATH",
    "__version__",
]
