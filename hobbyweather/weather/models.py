"""
Weather forecast data model

Units are metric: temperatures in °C, wind speed in m/s, visibility in km.
Precipitation probability is kept as the 0-1 fraction the upstream API
reports; `precipitation_probability` exposes it in percentage points.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any


class WeatherType(StrEnum):
    """Broad weather condition categories."""

    CLEAR = "clear"
    CLOUDS = "clouds"
    RAIN = "rain"
    DRIZZLE = "drizzle"
    THUNDERSTORM = "thunderstorm"
    SNOW = "snow"
    MIST = "mist"
    FOG = "fog"
    HAZE = "haze"
    DUST = "dust"

    @classmethod
    def from_openweather(cls, main: str | None) -> "WeatherType":
        """Map an OpenWeather `weather[0].main` value to a WeatherType."""
        if not main:
            return cls.CLEAR
        key = main.strip().lower()
        aliases = {
            "smoke": cls.HAZE,
            "sand": cls.DUST,
            "ash": cls.DUST,
            "squall": cls.THUNDERSTORM,
            "tornado": cls.THUNDERSTORM,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            return cls.CLEAR


DESCRIPTIONS: dict[WeatherType, str] = {
    WeatherType.CLEAR: "Clear",
    WeatherType.CLOUDS: "Cloudy",
    WeatherType.RAIN: "Rain",
    WeatherType.DRIZZLE: "Drizzle",
    WeatherType.THUNDERSTORM: "Thunderstorm",
    WeatherType.SNOW: "Snow",
    WeatherType.MIST: "Mist",
    WeatherType.FOG: "Fog",
    WeatherType.HAZE: "Haze",
    WeatherType.DUST: "Dust",
}


def describe(weather_type: WeatherType) -> str:
    return DESCRIPTIONS.get(weather_type, str(weather_type))


@dataclass
class CurrentWeather:
    """Conditions at fetch time."""

    temperature: float
    humidity: float
    wind_speed: float
    weather_type: WeatherType = WeatherType.CLEAR
    description: str = ""
    feels_like: float | None = None
    pressure: float | None = None
    wind_direction: float | None = None
    uv_index: float | None = None
    visibility: float | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "wind_speed": self.wind_speed,
            "weather_type": self.weather_type.value,
            "description": self.description,
            "feels_like": self.feels_like,
            "pressure": self.pressure,
            "wind_direction": self.wind_direction,
            "uv_index": self.uv_index,
            "visibility": self.visibility,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class TemperatureProfile:
    """Temperatures across one day."""

    min: float
    max: float
    morning: float | None = None
    day: float | None = None
    evening: float | None = None
    night: float | None = None

    @property
    def mean(self) -> float:
        return (self.min + self.max) / 2

    def for_time_of_day(self, time_of_day: str) -> float | None:
        return getattr(self, time_of_day, None) if time_of_day in {"morning", "day", "evening", "night"} else None


@dataclass
class DailyForecast:
    """Aggregated forecast for one calendar day."""

    date: date
    temperature: TemperatureProfile
    humidity: float
    wind_speed: float
    weather_type: WeatherType = WeatherType.CLEAR
    description: str = ""
    pop: float = 0.0
    uv_index: float | None = None
    pressure: float | None = None
    wind_direction: float | None = None

    @property
    def precipitation_probability(self) -> float:
        """Probability of precipitation in percentage points (0-100)."""
        return round(self.pop * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "temperature": {
                "min": self.temperature.min,
                "max": self.temperature.max,
                "morning": self.temperature.morning,
                "day": self.temperature.day,
                "evening": self.temperature.evening,
                "night": self.temperature.night,
            },
            "humidity": self.humidity,
            "wind_speed": self.wind_speed,
            "weather_type": self.weather_type.value,
            "description": self.description,
            "pop": self.pop,
            "uv_index": self.uv_index,
        }


@dataclass
class WeatherForecast:
    """Current conditions plus a multi-day outlook."""

    latitude: float
    longitude: float
    current: CurrentWeather
    daily: list[DailyForecast] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def today(self) -> DailyForecast | None:
        return self.daily[0] if self.daily else None

    def limit_days(self, days: int) -> "WeatherForecast":
        """Copy of this forecast keeping only the first `days` daily entries."""
        return WeatherForecast(
            latitude=self.latitude,
            longitude=self.longitude,
            current=self.current,
            daily=list(self.daily[: max(days, 0)]),
            generated_at=self.generated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "current": self.current.to_dict(),
            "daily": [d.to_dict() for d in self.daily],
            "generated_at": self.generated_at.isoformat(),
        }
