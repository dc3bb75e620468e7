"""
Hobby data model

Usage:
    from hobbyweather.hobbies.models import Hobby, PreferredWeather, TimeOfDay

    hobby = Hobby(
        name="Cycling",
        preferred_weather=[PreferredWeather(WeatherType.CLEAR, 9)],
        preferred_time_of_day=[TimeOfDay.MORNING],
        min_temperature=12,
        max_temperature=26,
    )
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from hobbyweather.weather.models import WeatherType


class TimeOfDay(StrEnum):
    MORNING = "morning"
    DAY = "day"
    EVENING = "evening"
    NIGHT = "night"


@dataclass
class PreferredWeather:
    """A weather type the hobby likes, weighted 1-10."""

    condition: WeatherType
    weight: int = 5

    def __post_init__(self) -> None:
        self.condition = WeatherType(self.condition)
        if not 1 <= int(self.weight) <= 10:
            raise ValueError(f"weight must be between 1 and 10, got {self.weight}")
        self.weight = int(self.weight)

    def to_dict(self) -> dict[str, Any]:
        return {"condition": self.condition.value, "weight": self.weight}


@dataclass
class Hobby:
    """A user activity with its weather preferences."""

    name: str
    id: int | None = None
    description: str | None = None
    is_active: bool = True
    is_outdoor: bool = True
    preferred_weather: list[PreferredWeather] = field(default_factory=list)
    preferred_time_of_day: list[TimeOfDay] = field(default_factory=list)
    min_temperature: float | None = None
    max_temperature: float | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "is_outdoor": self.is_outdoor,
            "preferred_weather": [w.to_dict() for w in self.preferred_weather],
            "preferred_time_of_day": [t.value for t in self.preferred_time_of_day],
            "min_temperature": self.min_temperature,
            "max_temperature": self.max_temperature,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(cls, row: Any) -> "Hobby":
        """Create from a sqlite3.Row of the hobbies table."""
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            is_active=bool(row["is_active"]),
            is_outdoor=bool(row["is_outdoor"]),
            preferred_weather=[
                PreferredWeather(condition=w["condition"], weight=w["weight"])
                for w in json.loads(row["preferred_weather"] or "[]")
            ],
            preferred_time_of_day=[TimeOfDay(t) for t in json.loads(row["preferred_time_of_day"] or "[]")],
            min_temperature=row["min_temperature"],
            max_temperature=row["max_temperature"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
