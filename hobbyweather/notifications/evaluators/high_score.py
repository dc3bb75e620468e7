"""
Tool: High-Score Evaluator
Purpose: Notify when one or more active hobbies score highly for the forecast

Algorithm:
    1. Fetch the forecast and the active hobbies (skip if either is missing)
    2. Rank hobbies with the recommendation scorer
    3. Keep the top N scoring at least min_score
    4. Skip if any of them was already notified within the cooldown window

Cooldown is tracked with "hobby:<id>" subject keys on history rows.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from hobbyweather.hobbies.models import Hobby
from hobbyweather.hobbies.recommendation import HobbyRecommendation, generate_recommendations
from hobbyweather.hobbies.store import HobbySource
from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.evaluators.base import EvaluationContext, EvaluationResult, Evaluator
from hobbyweather.notifications.models import NotificationPayload, NotificationType
from hobbyweather.notifications.store import NotificationStore
from hobbyweather.weather.models import WeatherForecast, describe
from hobbyweather.weather.provider import ForecastProvider

logger = get_logger(__name__)

Recommender = Callable[[list[Hobby], WeatherForecast], list[HobbyRecommendation]]


@dataclass(frozen=True)
class HighScoreThreshold:
    min_score: float = 80
    top_n: int = 3
    cooldown_hours: float = 6


DEFAULT_THRESHOLD = HighScoreThreshold()
# Manual testing trigger: lower bar, more results, no cooldown
FORCE_THRESHOLD = HighScoreThreshold(min_score=60, top_n=5, cooldown_hours=0)


def hobby_subject_key(hobby: Hobby) -> str:
    return f"hobby:{hobby.id if hobby.id is not None else hobby.name}"


class HighScoreEvaluator(Evaluator):
    notification_type = NotificationType.HIGH_SCORE

    def __init__(
        self,
        forecast_provider: ForecastProvider,
        hobby_source: HobbySource,
        threshold: HighScoreThreshold = DEFAULT_THRESHOLD,
        recommender: Recommender = generate_recommendations,
    ):
        self.forecast_provider = forecast_provider
        self.hobby_source = hobby_source
        self.threshold = threshold
        self.recommender = recommender

    async def evaluate(self, context: EvaluationContext) -> EvaluationResult:
        threshold = self.threshold
        min_score = context.config.conditions.min_score
        if min_score is not None:
            threshold = HighScoreThreshold(min_score, threshold.top_n, threshold.cooldown_hours)
        return await self.evaluate_with(context.store, context.now, threshold)

    async def force_evaluate(self, store: NotificationStore, now: datetime | None = None) -> EvaluationResult:
        return await self.evaluate_with(store, now or store.clock.now(), FORCE_THRESHOLD)

    async def evaluate_with(
        self,
        store: NotificationStore,
        now: datetime,
        threshold: HighScoreThreshold,
    ) -> EvaluationResult:
        try:
            forecast = await self.forecast_provider.get_current_forecast()
        except Exception as e:
            logger.warning("high_score_forecast_failed", error=str(e))
            forecast = None
        if forecast is None:
            return EvaluationResult.skip("forecast unavailable")

        hobbies = await self.hobby_source.get_active_hobbies()
        if not hobbies:
            return EvaluationResult.skip("no active hobbies")

        ranked = self.recommender(hobbies, forecast)
        qualifying = sorted(
            (r for r in ranked if r.overall_score >= threshold.min_score),
            key=lambda r: r.overall_score,
            reverse=True,
        )[: threshold.top_n]

        if not qualifying:
            return EvaluationResult.skip(
                f"no hobby meets threshold (min score {threshold.min_score:g})",
                best_score=round(ranked[0].overall_score, 1) if ranked else None,
            )

        subject_keys = [hobby_subject_key(r.hobby) for r in qualifying]
        if threshold.cooldown_hours > 0:
            since = now - timedelta(hours=threshold.cooldown_hours)
            recent = await store.recent_subjects(self.notification_type, subject_keys, since)
            if recent:
                return EvaluationResult.skip(
                    "cooldown active",
                    hobbies=sorted(recent),
                    cooldown_hours=threshold.cooldown_hours,
                )

        payload = build_payload(qualifying, forecast)
        return EvaluationResult.notify(payload, hobbies=[r.hobby.name for r in qualifying])

    async def get_statistics(self, store: NotificationStore) -> dict[str, Any]:
        """Totals over all high-score history."""
        history = await store.get_history(self.notification_type)
        if not history:
            return {
                "total_notifications": 0,
                "average_score": 0,
                "top_hobby": None,
                "last_notification_time": None,
            }

        top_scores = []
        counts: Counter[str] = Counter()
        for entry in history:
            recs = entry.data.get("recommendations") or []
            if recs and recs[0].get("score"):
                top_scores.append(recs[0]["score"])
            for rec in recs:
                if rec.get("name"):
                    counts[rec["name"]] += 1

        top = counts.most_common(1)
        return {
            "total_notifications": len(history),
            "average_score": round(sum(top_scores) / len(top_scores)) if top_scores else 0,
            "top_hobby": {"name": top[0][0], "count": top[0][1]} if top else None,
            "last_notification_time": history[0].sent_at.isoformat(),
        }


def build_payload(qualifying: list[HobbyRecommendation], forecast: WeatherForecast) -> NotificationPayload:
    top = qualifying[0]
    condition = describe(forecast.current.weather_type)
    temperature = round(forecast.current.temperature)
    top_score = round(top.overall_score)

    data = {
        "recommendations": [
            {"hobby_id": r.hobby.id, "name": r.hobby.name, "score": round(r.overall_score, 1)}
            for r in qualifying
        ],
        "weather_condition": condition,
        "temperature": temperature,
    }
    subject_keys = [hobby_subject_key(r.hobby) for r in qualifying]

    if len(qualifying) > 1:
        names = ", ".join(r.hobby.name for r in qualifying[:3])
        return NotificationPayload(
            type=NotificationType.HIGH_SCORE,
            title=f"{len(qualifying)} hobbies look great today!",
            message=f"{condition}, {temperature}°C. Try {names}. Top score: {top_score}",
            icon="⭐",
            data=data,
            subject_keys=subject_keys,
        )

    return NotificationPayload(
        type=NotificationType.HIGH_SCORE,
        title=f"Perfect day for {top.hobby.name}!",
        message=f"{condition}, {temperature}°C. Scores {top_score} out of 100.",
        icon="🌟",
        data=data,
        subject_keys=subject_keys,
    )
