"""Tests for hobbyweather/weather/provider.py"""

from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from hobbyweather.weather.models import WeatherType
from hobbyweather.weather.provider import OpenWeatherProvider, parse_current, parse_daily

# Tokyo, UTC+9
OFFSET = 9 * 3600


def epoch(year, month, day, hour):
    """Epoch seconds for a local Tokyo time."""
    return int(datetime(year, month, day, hour, tzinfo=timezone(timedelta(seconds=OFFSET))).timestamp())


def forecast_item(when, temp, pop=0.0, main="Clear", wind=3.0, humidity=60):
    return {
        "dt": epoch(*when),
        "main": {"temp": temp, "humidity": humidity, "pressure": 1012},
        "weather": [{"main": main, "description": main.lower()}],
        "wind": {"speed": wind, "deg": 180},
        "pop": pop,
    }


CURRENT = {
    "dt": epoch(2026, 3, 3, 12),
    "timezone": OFFSET,
    "main": {"temp": 18.2, "feels_like": 17.5, "humidity": 55, "pressure": 1015},
    "wind": {"speed": 4.1, "deg": 200},
    "weather": [{"main": "Clouds", "description": "broken clouds"}],
    "visibility": 8000,
}

FORECAST = {
    "city": {"timezone": OFFSET},
    "list": [
        forecast_item((2026, 3, 3, 12), 18.0),
        forecast_item((2026, 3, 3, 15), 19.0, pop=0.2),
        forecast_item((2026, 3, 3, 18), 15.0),
        forecast_item((2026, 3, 3, 21), 12.0),
        forecast_item((2026, 3, 4, 0), 0.0, main="Snow", wind=1.0),
        forecast_item((2026, 3, 4, 6), 2.0, pop=0.7, main="Snow"),
        forecast_item((2026, 3, 4, 12), 6.0, pop=0.4, main="Rain"),
    ],
}


def mock_client(calls=None, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if status != 200:
            return httpx.Response(status)
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=CURRENT)
        return httpx.Response(200, json=FORECAST)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParsing:
    def test_current(self):
        current = parse_current(CURRENT)

        assert current.temperature == 18.2
        assert current.weather_type == WeatherType.CLOUDS
        assert current.visibility == 8.0
        assert current.uv_index is None
        assert current.timestamp == datetime(2026, 3, 3, 12)

    def test_daily_groups_by_local_date(self):
        daily = parse_daily(FORECAST)

        assert [d.date for d in daily] == [date(2026, 3, 3), date(2026, 3, 4)]
        today, tomorrow = daily
        assert today.temperature.min == 12.0
        assert today.temperature.max == 19.0
        assert today.temperature.day == 18.0
        assert today.temperature.evening == 15.0
        assert today.pop == 0.2
        assert today.precipitation_probability == 20.0
        assert tomorrow.temperature.night == 0.0
        assert tomorrow.temperature.morning == 2.0
        assert tomorrow.weather_type == WeatherType.SNOW
        assert tomorrow.pop == 0.7
        assert tomorrow.wind_speed == pytest.approx(2.3)

    def test_weather_aliases(self):
        assert WeatherType.from_openweather("Smoke") == WeatherType.HAZE
        assert WeatherType.from_openweather("Squall") == WeatherType.THUNDERSTORM
        assert WeatherType.from_openweather("Volcano") == WeatherType.CLEAR
        assert WeatherType.from_openweather(None) == WeatherType.CLEAR


class TestOpenWeatherProvider:
    @pytest.mark.asyncio
    async def test_fetches_and_caches(self):
        calls = []
        now = datetime(2026, 3, 3, 12)
        clock = {"now": now}
        provider = OpenWeatherProvider(
            "key", 35.68, 139.65, client=mock_client(calls), cache_ttl_minutes=30, now=lambda: clock["now"]
        )

        forecast = await provider.get_current_forecast()
        clock["now"] = now + timedelta(minutes=10)
        cached = await provider.get_current_forecast()

        assert forecast is cached
        assert len(calls) == 2
        assert forecast.generated_at == now
        assert forecast.today.date == date(2026, 3, 3)
        assert calls[0].url.params["appid"] == "key"
        assert calls[0].url.params["units"] == "metric"

        clock["now"] = now + timedelta(minutes=31)
        await provider.get_current_forecast()
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self):
        calls = []
        provider = OpenWeatherProvider("key", 35.68, 139.65, client=mock_client(calls))

        await provider.get_current_forecast()
        await provider.get_current_forecast(force_refresh=True)

        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        calls = []
        provider = OpenWeatherProvider(None, 35.68, 139.65, client=mock_client(calls))

        assert await provider.get_current_forecast() is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self):
        provider = OpenWeatherProvider("key", 35.68, 139.65, client=mock_client(status=401))

        assert await provider.get_current_forecast() is None

    @pytest.mark.asyncio
    async def test_empty_forecast_returns_none(self):
        def handler(request):
            if request.url.path.endswith("/weather"):
                return httpx.Response(200, json=CURRENT)
            return httpx.Response(200, json={"city": {"timezone": OFFSET}, "list": []})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OpenWeatherProvider("key", 35.68, 139.65, client=client)

        assert await provider.get_current_forecast() is None
