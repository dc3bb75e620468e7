"""Condition evaluators, one per notification type."""

from __future__ import annotations

from hobbyweather.hobbies.store import HobbySource
from hobbyweather.notifications.evaluators.base import EvaluationContext, EvaluationResult, Evaluator
from hobbyweather.notifications.evaluators.high_score import HighScoreEvaluator
from hobbyweather.notifications.evaluators.regular_report import RegularReportEvaluator
from hobbyweather.notifications.evaluators.weather_alert import WeatherAlertEvaluator
from hobbyweather.notifications.models import NotificationType
from hobbyweather.weather.provider import ForecastProvider


def build_evaluators(
    forecast_provider: ForecastProvider,
    hobby_source: HobbySource,
) -> dict[NotificationType, Evaluator]:
    """Default evaluator for every notification type."""
    evaluators: list[Evaluator] = [
        HighScoreEvaluator(forecast_provider, hobby_source),
        WeatherAlertEvaluator(forecast_provider),
        RegularReportEvaluator(forecast_provider, hobby_source),
    ]
    return {e.notification_type: e for e in evaluators}


__all__ = [
    "EvaluationContext",
    "EvaluationResult",
    "Evaluator",
    "HighScoreEvaluator",
    "RegularReportEvaluator",
    "WeatherAlertEvaluator",
    "build_evaluators",
]
