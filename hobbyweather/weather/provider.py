"""
Forecast providers

ForecastProvider is the seam the notification evaluators depend on: one
async call that returns current conditions plus a daily outlook, or None
when data is unavailable. OpenWeatherProvider implements it on top of the
OpenWeather 2.5 `/weather` and `/forecast` endpoints with an in-memory
TTL cache.

Usage:
    provider = OpenWeatherProvider(api_key="...", latitude=35.68, longitude=139.65)
    forecast = await provider.get_current_forecast()
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from hobbyweather.logging_config import get_logger
from hobbyweather.weather.models import (
    CurrentWeather,
    DailyForecast,
    TemperatureProfile,
    WeatherForecast,
    WeatherType,
)

logger = get_logger(__name__)

MAX_FORECAST_DAYS = 7


class ForecastUnavailableError(Exception):
    """Raised internally when the upstream response cannot be used."""


class ForecastProvider(ABC):
    """Source of the current forecast."""

    @abstractmethod
    async def get_current_forecast(self) -> WeatherForecast | None:
        """Return the latest forecast, or None if it cannot be obtained."""
        ...


class OpenWeatherProvider(ForecastProvider):
    """OpenWeather 2.5 client with a TTL cache."""

    def __init__(
        self,
        api_key: str | None,
        latitude: float,
        longitude: float,
        base_url: str = "https://api.openweathermap.org/data/2.5",
        units: str = "metric",
        cache_ttl_minutes: int = 30,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.api_key = api_key
        self.latitude = latitude
        self.longitude = longitude
        self.base_url = base_url.rstrip("/")
        self.units = units
        self.cache_ttl = timedelta(minutes=cache_ttl_minutes)
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._now = now
        self._cached: WeatherForecast | None = None
        self._cached_at: datetime | None = None

    @classmethod
    def from_config(cls, weather_config: Any) -> "OpenWeatherProvider":
        """Build from a WeatherConfig section."""
        return cls(
            api_key=os.environ.get(weather_config.api_key_env),
            latitude=weather_config.latitude,
            longitude=weather_config.longitude,
            base_url=weather_config.base_url,
            units=weather_config.units,
            cache_ttl_minutes=weather_config.cache_ttl_minutes,
            timeout_seconds=weather_config.timeout_seconds,
        )

    def invalidate_cache(self) -> None:
        self._cached = None
        self._cached_at = None

    async def get_current_forecast(self, force_refresh: bool = False) -> WeatherForecast | None:
        now = self._now()
        if (
            not force_refresh
            and self._cached is not None
            and self._cached_at is not None
            and now - self._cached_at < self.cache_ttl
        ):
            return self._cached

        if not self.api_key:
            logger.warning("weather_api_key_missing")
            return None

        try:
            if self._client is not None:
                forecast = await self._fetch(self._client)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    forecast = await self._fetch(client)
        except httpx.HTTPError as e:
            logger.warning("weather_fetch_failed", error=str(e))
            return None
        except (ForecastUnavailableError, KeyError, TypeError, ValueError) as e:
            logger.warning("weather_response_invalid", error=str(e))
            return None

        self._cached = forecast
        self._cached_at = now
        logger.info(
            "weather_fetched",
            days=len(forecast.daily),
            weather_type=forecast.current.weather_type.value,
            temperature=forecast.current.temperature,
        )
        return forecast

    async def _fetch(self, client: httpx.AsyncClient) -> WeatherForecast:
        params = {
            "lat": self.latitude,
            "lon": self.longitude,
            "appid": self.api_key,
            "units": self.units,
        }
        current_resp = await client.get(f"{self.base_url}/weather", params=params)
        current_resp.raise_for_status()
        forecast_resp = await client.get(f"{self.base_url}/forecast", params=params)
        forecast_resp.raise_for_status()

        current = parse_current(current_resp.json())
        daily = parse_daily(forecast_resp.json())
        if not daily:
            raise ForecastUnavailableError("forecast response contained no items")

        return WeatherForecast(
            latitude=self.latitude,
            longitude=self.longitude,
            current=current,
            daily=daily,
            generated_at=self._now(),
        )


# =============================================================================
# Response parsing
# =============================================================================

def _local_time(epoch: int, offset_seconds: int) -> datetime:
    return datetime.fromtimestamp(epoch + offset_seconds, tz=timezone.utc).replace(tzinfo=None)


def _weather_entry(item: dict[str, Any]) -> dict[str, Any]:
    weather = item.get("weather") or []
    return weather[0] if weather else {}


def parse_current(data: dict[str, Any]) -> CurrentWeather:
    """Parse a `/weather` response."""
    main = data["main"]
    wind = data.get("wind") or {}
    entry = _weather_entry(data)
    visibility = data.get("visibility")
    offset = int(data.get("timezone") or 0)

    return CurrentWeather(
        temperature=float(main["temp"]),
        feels_like=main.get("feels_like"),
        humidity=float(main.get("humidity", 0)),
        pressure=main.get("pressure"),
        wind_speed=float(wind.get("speed", 0.0)),
        wind_direction=wind.get("deg"),
        weather_type=WeatherType.from_openweather(entry.get("main")),
        description=entry.get("description", ""),
        # 2.5 /weather has no UV index
        uv_index=None,
        visibility=round(visibility / 1000, 1) if isinstance(visibility, (int, float)) else None,
        timestamp=_local_time(int(data["dt"]), offset) if "dt" in data else datetime.now(),
    )


def _temperature_at_hour(items: list[tuple[datetime, dict[str, Any]]], hour: int, fallback: float) -> float:
    for ts, item in items:
        if ts.hour == hour:
            return float(item["main"]["temp"])
    return fallback


def parse_daily(data: dict[str, Any]) -> list[DailyForecast]:
    """Group 3-hourly `/forecast` items into daily forecasts."""
    offset = int((data.get("city") or {}).get("timezone") or 0)

    grouped: OrderedDict[date, list[tuple[datetime, dict[str, Any]]]] = OrderedDict()
    for item in data.get("list") or []:
        ts = _local_time(int(item["dt"]), offset)
        grouped.setdefault(ts.date(), []).append((ts, item))

    daily: list[DailyForecast] = []
    for day, items in list(grouped.items())[:MAX_FORECAST_DAYS]:
        temps = [float(item["main"]["temp"]) for _, item in items]
        humidities = [float(item["main"].get("humidity", 0)) for _, item in items]
        pressures = [float(item["main"].get("pressure", 0)) for _, item in items]
        winds = [float((item.get("wind") or {}).get("speed", 0.0)) for _, item in items]
        directions = [(item.get("wind") or {}).get("deg") for _, item in items]
        pops = [float(item.get("pop", 0.0) or 0.0) for _, item in items]

        mid = items[len(items) // 2][1]
        entry = _weather_entry(mid)
        if not entry:
            raise ForecastUnavailableError(f"forecast item for {day} has no weather entry")

        profile = TemperatureProfile(
            min=min(temps),
            max=max(temps),
            morning=_temperature_at_hour(items, 6, temps[0]),
            day=_temperature_at_hour(items, 12, temps[len(temps) // 2]),
            evening=_temperature_at_hour(items, 18, temps[-1]),
            night=_temperature_at_hour(items, 0, temps[0]),
        )

        daily.append(
            DailyForecast(
                date=day,
                temperature=profile,
                humidity=round(sum(humidities) / len(humidities)),
                pressure=round(sum(pressures) / len(pressures)),
                wind_speed=round(sum(winds) / len(winds), 1),
                wind_direction=next((d for d in directions if d is not None), None),
                weather_type=WeatherType.from_openweather(entry.get("main")),
                description=entry.get("description", ""),
                pop=max(pops) if pops else 0.0,
                uv_index=None,
            )
        )

    return daily
