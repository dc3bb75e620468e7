"""
Tool: Notification Models
Purpose: Data structures for notification configs, history, settings and tasks

Usage:
    from hobbyweather.notifications.models import (
        NotificationConfig,
        NotificationSchedule,
        NotificationType,
        TimeRange,
    )

Weekdays follow the 0=Sunday .. 6=Saturday convention throughout; use
`day_of_week()` to convert a datetime.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import StrEnum
from typing import Any

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

ALL_DAYS = (0, 1, 2, 3, 4, 5, 6)
WEEKDAYS = (1, 2, 3, 4, 5)


class NotificationType(StrEnum):
    HIGH_SCORE = "high-score"
    WEATHER_ALERT = "weather-alert"
    REGULAR_REPORT = "regular-report"


class NotificationFrequency(StrEnum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class NotificationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.MEDIUM: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}


class PermissionState(StrEnum):
    """Dispatcher permission state."""

    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" into a time, raising ValueError on bad input."""
    match = _HHMM.match(value or "")
    if not match:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def day_of_week(moment: datetime) -> int:
    """Weekday with Sunday=0."""
    return (moment.weekday() + 1) % 7


@dataclass
class TimeRange:
    """
    Clock-time window "HH:MM"-"HH:MM".

    Both endpoints are inclusive at minute resolution. When start > end the
    window wraps past midnight. start == end matches that single minute.
    """

    start: str
    end: str

    def __post_init__(self) -> None:
        parse_hhmm(self.start)
        parse_hhmm(self.end)

    @property
    def start_time(self) -> time:
        return parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return parse_hhmm(self.end)

    def contains(self, moment: datetime | time) -> bool:
        current = moment.time() if isinstance(moment, datetime) else moment
        current = time(current.hour, current.minute)
        start_time = self.start_time
        end_time = self.end_time

        if start_time <= end_time:
            return start_time <= current <= end_time
        return current >= start_time or current <= end_time

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeRange":
        return cls(start=data["start"], end=data["end"])


@dataclass
class NotificationSchedule:
    """Recurrence rule for a config."""

    frequency: NotificationFrequency
    time_of_day: list[TimeRange] = field(default_factory=list)
    days_of_week: list[int] = field(default_factory=lambda: list(ALL_DAYS))
    custom_interval: int | None = None  # minutes, custom frequency only

    def __post_init__(self) -> None:
        self.frequency = NotificationFrequency(self.frequency)
        self.time_of_day = [
            tr if isinstance(tr, TimeRange) else TimeRange.from_dict(tr) for tr in self.time_of_day
        ]
        for day in self.days_of_week:
            if day not in ALL_DAYS:
                raise ValueError(f"day of week must be 0-6, got {day}")
        self.days_of_week = sorted(set(self.days_of_week))
        if self.frequency == NotificationFrequency.CUSTOM and (not self.custom_interval or self.custom_interval < 1):
            raise ValueError("custom frequency requires a positive custom_interval")
        if self.frequency in (NotificationFrequency.DAILY, NotificationFrequency.WEEKLY) and not self.time_of_day:
            # Runs are placed at window starts
            raise ValueError(f"{self.frequency.value} frequency requires at least one time_of_day window")

    def to_dict(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "time_of_day": [tr.to_dict() for tr in self.time_of_day],
            "days_of_week": list(self.days_of_week),
            "custom_interval": self.custom_interval,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationSchedule":
        return cls(
            frequency=data["frequency"],
            time_of_day=[TimeRange.from_dict(tr) for tr in data.get("time_of_day", [])],
            days_of_week=data.get("days_of_week", list(ALL_DAYS)),
            custom_interval=data.get("custom_interval"),
        )


@dataclass
class NotificationConditions:
    """Type-specific thresholds. Unset fields use evaluator defaults."""

    # high-score
    min_score: float | None = None
    score_threshold: float | None = None

    # weather-alert
    precipitation_threshold: float | None = None  # %
    temperature_change_threshold: float | None = None  # °C
    wind_speed_threshold: float | None = None  # m/s

    # regular-report
    include_past_days: int | None = None
    include_upcoming_days: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "NotificationConditions":
        data = data or {}
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class NotificationConfig:
    """A user-editable notification rule."""

    type: NotificationType
    title: str
    schedule: NotificationSchedule
    conditions: NotificationConditions = field(default_factory=NotificationConditions)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    enabled: bool = True
    id: int | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.type = NotificationType(self.type)
        self.priority = NotificationPriority(self.priority)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "enabled": self.enabled,
            "priority": self.priority.value,
            "schedule": self.schedule.to_dict(),
            "conditions": self.conditions.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(cls, row: Any) -> "NotificationConfig":
        """Create from a notification_configs row."""
        return cls(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            enabled=bool(row["enabled"]),
            priority=row["priority"],
            schedule=NotificationSchedule.from_dict(json.loads(row["schedule"])),
            conditions=NotificationConditions.from_dict(json.loads(row["conditions"] or "{}")),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )


@dataclass
class NotificationPayload:
    """What the dispatcher shows."""

    type: NotificationType
    title: str
    message: str
    icon: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False
    # Structured dedup keys persisted with history, e.g. "hobby:7"
    subject_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "icon": self.icon,
            "data": self.data,
            "require_interaction": self.require_interaction,
        }


@dataclass
class NotificationHistory:
    """Append-only record of a sent notification."""

    config_id: int
    type: NotificationType
    title: str
    message: str
    sent_at: datetime
    id: int | None = None
    clicked: bool = False
    dismissed: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    subject_keys: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = NotificationType(self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "config_id": self.config_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "sent_at": self.sent_at.isoformat(),
            "clicked": self.clicked,
            "dismissed": self.dismissed,
            "data": self.data,
            "subject_keys": self.subject_keys,
        }

    @classmethod
    def from_row(cls, row: Any, subject_keys: list[str] | None = None) -> "NotificationHistory":
        return cls(
            id=row["id"],
            config_id=row["config_id"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            sent_at=datetime.fromisoformat(row["sent_at"]),
            clicked=bool(row["clicked"]),
            dismissed=bool(row["dismissed"]),
            data=json.loads(row["data"] or "{}"),
            subject_keys=subject_keys or [],
        )


@dataclass
class NotificationSettings:
    """Singleton global notification policy."""

    global_enabled: bool = True
    quiet_hours: TimeRange | None = None
    max_daily_notifications: int = 10
    sound_enabled: bool = True
    vibration_enabled: bool = True
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "global_enabled": self.global_enabled,
            "quiet_hours": self.quiet_hours.to_dict() if self.quiet_hours else None,
            "max_daily_notifications": self.max_daily_notifications,
            "sound_enabled": self.sound_enabled,
            "vibration_enabled": self.vibration_enabled,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Any) -> "NotificationSettings":
        quiet = json.loads(row["quiet_hours"]) if row["quiet_hours"] else None
        return cls(
            global_enabled=bool(row["global_enabled"]),
            quiet_hours=TimeRange.from_dict(quiet) if quiet else None,
            max_daily_notifications=row["max_daily_notifications"],
            sound_enabled=bool(row["sound_enabled"]),
            vibration_enabled=bool(row["vibration_enabled"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


@dataclass
class ScheduledTask:
    """
    In-memory armed run of a config. Never persisted.

    `generation` ties the task to the scheduling pass that created it so a
    firing that completes after a reschedule does not re-arm stale runs.
    """

    id: str
    config_id: int
    next_run: datetime
    config: NotificationConfig
    generation: int = 0
    last_run: datetime | None = None
    payload: NotificationPayload | None = None

    @staticmethod
    def make_id(config_id: int, next_run: datetime) -> str:
        return f"{config_id}-{int(next_run.timestamp() * 1000)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "config_id": self.config_id,
            "type": self.config.type.value,
            "next_run": self.next_run.isoformat(),
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }
