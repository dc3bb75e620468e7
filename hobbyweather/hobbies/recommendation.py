"""
Hobby recommendation scorer

Scores every (hobby, forecast day) pair on a 0-100 scale and ranks hobbies
by the mean of their three best days.

Day score weights:
    weather type   40%
    temperature    25%
    precipitation  20%
    wind           10%
    UV              5%

Usage:
    from hobbyweather.hobbies.recommendation import generate_recommendations

    recs = generate_recommendations(hobbies, forecast)
    best = recs[0].hobby.name if recs else None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from hobbyweather.hobbies.models import Hobby
from hobbyweather.weather.models import DailyForecast, WeatherForecast, WeatherType

DEFAULT_MIN_TEMPERATURE = 10.0
DEFAULT_MAX_TEMPERATURE = 30.0

WEIGHTS = {
    "weather": 0.40,
    "temperature": 0.25,
    "precipitation": 0.20,
    "wind": 0.10,
    "uv": 0.05,
}

# forecast type -> preferred types that partially satisfy it
COMPATIBLE_WEATHER: dict[WeatherType, tuple[WeatherType, ...]] = {
    WeatherType.CLEAR: (WeatherType.CLEAR,),
    WeatherType.CLOUDS: (WeatherType.CLOUDS, WeatherType.CLEAR),
    WeatherType.RAIN: (WeatherType.RAIN,),
    WeatherType.SNOW: (WeatherType.SNOW,),
    WeatherType.THUNDERSTORM: (WeatherType.THUNDERSTORM,),
    WeatherType.DRIZZLE: (WeatherType.DRIZZLE, WeatherType.RAIN),
    WeatherType.MIST: (WeatherType.MIST, WeatherType.CLOUDS),
    WeatherType.FOG: (WeatherType.FOG, WeatherType.MIST),
    WeatherType.HAZE: (WeatherType.HAZE, WeatherType.MIST),
    WeatherType.DUST: (WeatherType.DUST,),
}


@dataclass
class RecommendedDay:
    """One scored forecast day for a hobby."""

    date: date
    score: float
    forecast: DailyForecast
    matching_factors: list[str] = field(default_factory=list)
    warning_factors: list[str] = field(default_factory=list)
    breakdown: dict[str, float] = field(default_factory=dict)


@dataclass
class HobbyRecommendation:
    """A hobby with its days ranked best first."""

    hobby: Hobby
    overall_score: float
    recommended_days: list[RecommendedDay] = field(default_factory=list)

    @property
    def best_day(self) -> RecommendedDay | None:
        return self.recommended_days[0] if self.recommended_days else None

    def to_dict(self) -> dict:
        best = self.best_day
        return {
            "hobby_id": self.hobby.id,
            "hobby": self.hobby.name,
            "overall_score": round(self.overall_score, 1),
            "best_day": best.date.isoformat() if best else None,
            "matching_factors": best.matching_factors if best else [],
            "warning_factors": best.warning_factors if best else [],
        }


# =============================================================================
# Component scores
# =============================================================================

def target_temperature(hobby: Hobby, day: DailyForecast) -> float:
    """Mean temperature over the hobby's preferred times of day."""
    if not hobby.preferred_time_of_day:
        return day.temperature.mean

    temps = []
    for time_of_day in hobby.preferred_time_of_day:
        value = day.temperature.for_time_of_day(time_of_day.value)
        temps.append(value if value is not None else day.temperature.mean)
    return sum(temps) / len(temps)


def weather_score(hobby: Hobby, day: DailyForecast) -> float:
    if not hobby.preferred_weather:
        return 50.0

    for preferred in hobby.preferred_weather:
        if preferred.condition == day.weather_type:
            return float(min(100, preferred.weight * 10))

    compatible = COMPATIBLE_WEATHER.get(day.weather_type, ())
    if any(p.condition in compatible for p in hobby.preferred_weather):
        return 60.0
    return 20.0


def temperature_score(hobby: Hobby, day: DailyForecast) -> float:
    temp = target_temperature(hobby, day)
    low = hobby.min_temperature if hobby.min_temperature is not None else DEFAULT_MIN_TEMPERATURE
    high = hobby.max_temperature if hobby.max_temperature is not None else DEFAULT_MAX_TEMPERATURE

    if low <= temp <= high:
        return 100.0

    distance = min(abs(temp - low), abs(temp - high))
    return max(0.0, 100.0 - distance * 5)


def precipitation_score(hobby: Hobby, day: DailyForecast) -> float:
    pop = day.precipitation_probability

    if hobby.is_outdoor:
        if pop <= 10:
            return 100.0
        if pop <= 30:
            return 70.0
        if pop <= 50:
            return 40.0
        return 10.0

    if pop <= 20:
        return 100.0
    if pop <= 50:
        return 80.0
    if pop <= 80:
        return 60.0
    return 40.0


def wind_score(hobby: Hobby, day: DailyForecast) -> float:
    wind = day.wind_speed

    if hobby.is_outdoor:
        if wind <= 2:
            return 100.0
        if wind <= 5:
            return 80.0
        if wind <= 8:
            return 60.0
        if wind <= 12:
            return 30.0
        return 10.0

    return 100.0 if wind <= 15 else 80.0


def uv_score(hobby: Hobby, day: DailyForecast) -> float:
    if not hobby.is_outdoor:
        return 100.0

    uv = day.uv_index or 0.0
    if uv <= 2:
        return 100.0
    if uv <= 5:
        return 90.0
    if uv <= 7:
        return 70.0
    if uv <= 10:
        return 50.0
    return 30.0


def score_day(hobby: Hobby, day: DailyForecast) -> tuple[float, dict[str, float]]:
    """Weighted 0-100 suitability of one day for one hobby."""
    breakdown = {
        "weather": weather_score(hobby, day),
        "temperature": temperature_score(hobby, day),
        "precipitation": precipitation_score(hobby, day),
        "wind": wind_score(hobby, day),
        "uv": uv_score(hobby, day),
    }
    total = sum(breakdown[k] * w for k, w in WEIGHTS.items())
    return max(0.0, min(100.0, total)), breakdown


def analyze_factors(hobby: Hobby, day: DailyForecast) -> tuple[list[str], list[str]]:
    """Human-readable reasons for and against a day."""
    matching: list[str] = []
    warnings: list[str] = []

    for preferred in hobby.preferred_weather:
        if preferred.condition == day.weather_type:
            label = day.description or day.weather_type.value
            matching.append(f"Preferred weather: {label} (weight {preferred.weight})")
            break

    temp = target_temperature(hobby, day)
    low = hobby.min_temperature if hobby.min_temperature is not None else DEFAULT_MIN_TEMPERATURE
    high = hobby.max_temperature if hobby.max_temperature is not None else DEFAULT_MAX_TEMPERATURE
    if low <= temp <= high:
        matching.append(f"Comfortable temperature: {temp:.1f}°C")
    elif temp < low:
        warnings.append(f"Cold: {temp:.1f}°C (prefers {low:g}°C or warmer)")
    else:
        warnings.append(f"Hot: {temp:.1f}°C (prefers {high:g}°C or cooler)")

    pop = day.precipitation_probability
    if hobby.is_outdoor and pop > 30:
        warnings.append(f"Chance of rain: {pop:.0f}%")
    elif pop <= 10:
        matching.append(f"Dry: {pop:.0f}% chance of rain")

    if hobby.is_outdoor and day.wind_speed > 8:
        warnings.append(f"Strong wind: {day.wind_speed:.1f} m/s")
    elif day.wind_speed <= 3:
        matching.append(f"Light wind: {day.wind_speed:.1f} m/s")

    if hobby.is_outdoor and (day.uv_index or 0) > 7:
        warnings.append(f"High UV: index {day.uv_index:.1f}")

    return matching, warnings


# =============================================================================
# Ranking
# =============================================================================

def recommend_days(hobby: Hobby, forecast: WeatherForecast) -> list[RecommendedDay]:
    days = []
    for daily in forecast.daily:
        score, breakdown = score_day(hobby, daily)
        matching, warnings = analyze_factors(hobby, daily)
        days.append(
            RecommendedDay(
                date=daily.date,
                score=score,
                forecast=daily,
                matching_factors=matching,
                warning_factors=warnings,
                breakdown=breakdown,
            )
        )
    days.sort(key=lambda d: d.score, reverse=True)
    return days


def generate_recommendations(hobbies: list[Hobby], forecast: WeatherForecast) -> list[HobbyRecommendation]:
    """Rank hobbies by the mean score of their three best forecast days."""
    recommendations = []
    for hobby in hobbies:
        days = recommend_days(hobby, forecast)
        if not days:
            continue
        top = days[:3]
        overall = sum(d.score for d in top) / len(top)
        recommendations.append(HobbyRecommendation(hobby=hobby, overall_score=overall, recommended_days=days))

    recommendations.sort(key=lambda r: r.overall_score, reverse=True)
    return recommendations
