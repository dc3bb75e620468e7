"""
Tool: Regular-Report Evaluator
Purpose: Periodic digest of the best hobbies and the weather outlook

No cooldown of its own; the owning config's schedule sets the cadence.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Literal

from hobbyweather.hobbies.models import Hobby
from hobbyweather.hobbies.recommendation import HobbyRecommendation, generate_recommendations
from hobbyweather.hobbies.store import HobbySource
from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.evaluators.base import EvaluationContext, EvaluationResult, Evaluator
from hobbyweather.notifications.models import NotificationConfig, NotificationFrequency, NotificationPayload, NotificationType
from hobbyweather.notifications.store import NotificationStore
from hobbyweather.weather.models import WeatherForecast, describe
from hobbyweather.weather.provider import ForecastProvider

logger = get_logger(__name__)

Recommender = Callable[[list[Hobby], WeatherForecast], list[HobbyRecommendation]]

HIGH_SCORE = 80
LOW_SCORE = 60
TOP_RECOMMENDATIONS = 5
MAX_ACTION_ITEMS = 4
MAX_MESSAGE_LENGTH = 80
STATS_LOOKBACK_DAYS = 30

PERIOD_WORDS = {"daily": "Today", "weekly": "This week", "monthly": "This month"}
PERIOD_TITLES = {"daily": "Today's", "weekly": "This week's", "monthly": "This month's"}


@dataclass(frozen=True)
class ReportPeriod:
    type: Literal["daily", "weekly", "monthly"] = "daily"
    include_past_days: int = 1
    include_upcoming_days: int = 3

    @classmethod
    def for_config(cls, config: NotificationConfig) -> "ReportPeriod":
        conditions = config.conditions
        period_type = "weekly" if config.schedule.frequency == NotificationFrequency.WEEKLY else "daily"
        return cls(
            type=period_type,
            include_past_days=conditions.include_past_days if conditions.include_past_days is not None else 1,
            include_upcoming_days=conditions.include_upcoming_days
            if conditions.include_upcoming_days is not None
            else 3,
        )


@dataclass
class ReportContent:
    summary: str
    top_recommendations: list[HobbyRecommendation]
    weather_summary: str
    statistics_summary: str
    action_items: list[str] = field(default_factory=list)


class RegularReportEvaluator(Evaluator):
    notification_type = NotificationType.REGULAR_REPORT

    def __init__(
        self,
        forecast_provider: ForecastProvider,
        hobby_source: HobbySource,
        recommender: Recommender = generate_recommendations,
    ):
        self.forecast_provider = forecast_provider
        self.hobby_source = hobby_source
        self.recommender = recommender

    async def evaluate(self, context: EvaluationContext) -> EvaluationResult:
        period = ReportPeriod.for_config(context.config)
        return await self.generate(context.store, context.now, period)

    async def generate(self, store: NotificationStore, now: datetime, period: ReportPeriod) -> EvaluationResult:
        try:
            forecast = await self.forecast_provider.get_current_forecast()
        except Exception as e:
            logger.warning("report_forecast_failed", error=str(e))
            forecast = None
        if forecast is None:
            return EvaluationResult.skip("forecast unavailable")

        hobbies = await self.hobby_source.get_active_hobbies()
        if not hobbies:
            return EvaluationResult.skip("no active hobbies")

        window = forecast.limit_days(period.include_upcoming_days) if period.include_upcoming_days > 0 else forecast
        recommendations = self.recommender(hobbies, window)
        if not recommendations:
            return EvaluationResult.skip("no recommendations generated")

        content = await self.create_content(store, now, recommendations, forecast, period)
        payload = build_payload(content, period, now)
        return EvaluationResult.notify(payload, action_items=content.action_items)

    async def create_content(
        self,
        store: NotificationStore,
        now: datetime,
        recommendations: list[HobbyRecommendation],
        forecast: WeatherForecast,
        period: ReportPeriod,
    ) -> ReportContent:
        top = sorted(recommendations, key=lambda r: r.overall_score, reverse=True)[:TOP_RECOMMENDATIONS]
        return ReportContent(
            summary=summarize(top, period),
            top_recommendations=top,
            weather_summary=summarize_weather(forecast),
            statistics_summary=await self._statistics_summary(store, now, recommendations, period),
            action_items=action_items(top, forecast),
        )

    async def _statistics_summary(
        self,
        store: NotificationStore,
        now: datetime,
        recommendations: list[HobbyRecommendation],
        period: ReportPeriod,
    ) -> str:
        average = round(sum(r.overall_score for r in recommendations) / len(recommendations))
        outdoor = sum(1 for r in recommendations if r.hobby.is_outdoor)
        indoor = len(recommendations) - outdoor

        summary = f"Average suitability: {average}"
        if outdoor and indoor:
            summary += f" ({outdoor} outdoor, {indoor} indoor)"
        elif outdoor:
            summary += " (mostly outdoor)"
        else:
            summary += " (mostly indoor)"

        reports = await store.count_history(self.notification_type, since=now - timedelta(days=STATS_LOOKBACK_DAYS))
        if reports:
            summary += f". {reports} report(s) sent in the last {STATS_LOOKBACK_DAYS} days"

        if period.include_past_days > 0:
            recent = await store.count_history(since=now - timedelta(days=period.include_past_days))
            summary += f". {recent} notification(s) in the past {period.include_past_days} day(s)"

        return summary + "."

    async def get_statistics(self, store: NotificationStore) -> dict[str, Any]:
        history = await store.get_history(self.notification_type)
        if not history:
            return {"total_reports": 0, "average_score": 0, "most_frequent_hobby": None, "last_report_time": None}

        scores = []
        counts: Counter[str] = Counter()
        for entry in history:
            top_hobbies = entry.data.get("top_hobbies") or []
            if top_hobbies and top_hobbies[0].get("score"):
                scores.append(top_hobbies[0]["score"])
            for hobby in top_hobbies:
                if hobby.get("name"):
                    counts[hobby["name"]] += 1

        most = counts.most_common(1)
        return {
            "total_reports": len(history),
            "average_score": round(sum(scores) / len(scores)) if scores else 0,
            "most_frequent_hobby": {"name": most[0][0], "count": most[0][1]} if most else None,
            "last_report_time": history[0].sent_at.isoformat(),
        }


def summarize(top: list[HobbyRecommendation], period: ReportPeriod) -> str:
    when = PERIOD_WORDS.get(period.type, "Today")
    high = [r for r in top if r.overall_score >= HIGH_SCORE]

    if not high:
        return f"{when} the weather is a little tough: {len(top)} hobbies checked, few score highly."
    if len(high) == 1:
        best = top[0]
        return f"{when} is ideal for {best.hobby.name} (score {round(best.overall_score)})."

    names = ", ".join(r.hobby.name for r in top[:3])
    return f"{when} {len(high)} hobbies have great conditions. Top picks: {names}."


def summarize_weather(forecast: WeatherForecast) -> str:
    current = forecast.current
    today = forecast.today
    pop = today.precipitation_probability if today else 0.0

    summary = f"Now {describe(current.weather_type).lower()}, {round(current.temperature)}°C, "
    if pop > 60:
        summary += f"{pop:.0f}% chance of rain, likely wet."
    elif pop > 30:
        summary += f"{pop:.0f}% chance of rain, changeable."
    else:
        summary += f"{pop:.0f}% chance of rain, settled."

    if current.wind_speed > 10:
        summary += f" Windy ({current.wind_speed:g} m/s)."
    if (current.uv_index or 0) > 6:
        summary += f" High UV, use sun protection (index {current.uv_index:g})."
    return summary


def action_items(top: list[HobbyRecommendation], forecast: WeatherForecast) -> list[str]:
    items: list[str] = []
    current = forecast.current
    today = forecast.today
    pop = today.precipitation_probability if today else 0.0

    high = [r for r in top if r.overall_score >= HIGH_SCORE]
    if high:
        items.append(f"Great day for {high[0].hobby.name}")

    if pop > 60:
        items.append("Prepare for rain and favour indoor activities")
    elif pop > 30:
        items.append("Take a folding umbrella if heading out")

    if (current.uv_index or 0) > 6:
        items.append("Wear sunscreen and a hat")

    if current.wind_speed > 10:
        items.append("Strong wind: take care outdoors")

    if current.temperature < 10:
        items.append("Dress warmly")
    elif current.temperature > 25:
        items.append("Stay hydrated and watch for heat")

    if top and all(r.overall_score < LOW_SCORE for r in top):
        items.append("Consider a rest day")

    return items[:MAX_ACTION_ITEMS]


def build_payload(content: ReportContent, period: ReportPeriod, now: datetime) -> NotificationPayload:
    message = content.summary
    if len(message) > MAX_MESSAGE_LENGTH:
        message = message[: MAX_MESSAGE_LENGTH - 3] + "..."

    return NotificationPayload(
        type=NotificationType.REGULAR_REPORT,
        title=f"📊 {PERIOD_TITLES.get(period.type, 'Today')} hobby report",
        message=message,
        icon="📊",
        data={
            "summary": content.summary,
            "top_hobbies": [
                {"name": r.hobby.name, "score": round(r.overall_score, 1)} for r in content.top_recommendations[:3]
            ],
            "weather_summary": content.weather_summary,
            "statistics_summary": content.statistics_summary,
            "action_items": content.action_items,
            "timestamp": now.isoformat(),
        },
    )
