"""Weather data model and forecast providers."""

from hobbyweather.weather.models import (
    CurrentWeather,
    DailyForecast,
    TemperatureProfile,
    WeatherForecast,
    WeatherType,
)
from hobbyweather.weather.provider import ForecastProvider, OpenWeatherProvider

__all__ = [
    "CurrentWeather",
    "DailyForecast",
    "ForecastProvider",
    "OpenWeatherProvider",
    "TemperatureProfile",
    "WeatherForecast",
    "WeatherType",
]
