"""
Pydantic models for args/notifications.yaml

Every section has complete defaults so the engine runs without a config
file. Invalid files fall back to defaults with a warning.

Usage:
    from hobbyweather.config_models import load_and_validate

    config = load_and_validate("notifications")
    interval = config.scheduler.check_interval_seconds
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hobbyweather import ARGS_DIR, DB_PATH

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# =============================================================================
# NotificationsConfig (args/notifications.yaml)
# =============================================================================

class SchedulerSettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    check_interval_seconds: float = Field(default=60.0, gt=0)
    max_tasks_per_config: int = Field(default=3, ge=1, le=10)
    immediate_recheck_minutes: int = Field(default=15, ge=1)
    shutdown_timeout_seconds: float = Field(default=10.0, ge=0)


class QuietHoursConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    start: str = Field(default="22:00")
    end: str = Field(default="06:00")

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"Expected HH:MM, got {v!r}")
        return v


class DefaultSettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    global_enabled: bool = Field(default=True)
    quiet_hours: Optional[QuietHoursConfig] = Field(default_factory=QuietHoursConfig)
    max_daily_notifications: int = Field(default=10, ge=0)
    sound_enabled: bool = Field(default=True)
    vibration_enabled: bool = Field(default=True)


class WeatherConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    api_key_env: str = Field(default="OPENWEATHER_API_KEY")
    base_url: str = Field(default="https://api.openweathermap.org/data/2.5")
    latitude: float = Field(default=35.6762, ge=-90, le=90)
    longitude: float = Field(default=139.6503, ge=-180, le=180)
    units: str = Field(default="metric")
    cache_ttl_minutes: int = Field(default=30, ge=0)
    timeout_seconds: float = Field(default=10.0, gt=0)


class DispatcherConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    kind: Literal["log", "webhook"] = Field(default="log")
    webhook_url: Optional[str] = None
    timeout_seconds: float = Field(default=10.0, gt=0)


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    path: str = Field(default=str(DB_PATH))


class NotificationsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    scheduler: SchedulerSettingsConfig = Field(default_factory=SchedulerSettingsConfig)
    settings: DefaultSettingsConfig = Field(default_factory=DefaultSettingsConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)


# =============================================================================
# Loader
# =============================================================================

_CONFIG_MAP: dict[str, type[BaseModel]] = {
    "notifications": NotificationsConfig,
}


def load_and_validate(
    config_name: str,
    model_class: type[BaseModel] | None = None,
    args_dir: Path | None = None,
) -> Any:
    if model_class is None:
        model_class = _CONFIG_MAP.get(config_name)
        if model_class is None:
            raise ValueError(f"Unknown config: {config_name}. Available: {list(_CONFIG_MAP.keys())}")

    yaml_path = (args_dir or ARGS_DIR) / f"{config_name}.yaml"

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return model_class.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {config_name}: {e}, using defaults")
        return model_class()


def validate_all_configs(args_dir: Path | None = None) -> dict[str, bool]:
    """Validate every known config file, returning name -> passed."""
    results: dict[str, bool] = {}
    base = args_dir or ARGS_DIR
    for name, model_class in _CONFIG_MAP.items():
        yaml_path = base / f"{name}.yaml"
        try:
            raw = {}
            if yaml_path.exists():
                with open(yaml_path) as f:
                    raw = yaml.safe_load(f) or {}
            model_class.model_validate(raw)
            results[name] = True
        except Exception as e:
            logger.warning(f"Config {name} failed validation: {e}")
            results[name] = False
    return results
