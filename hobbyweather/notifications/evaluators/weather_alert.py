"""
Tool: Weather-Alert Evaluator
Purpose: Warn about hazardous or suddenly changing weather

Two sources of alerts:
    Threshold rules: named rules whose conditions must ALL hold on today's
        forecast (e.g. precipitation above 50%)
    Change detection: compares this forecast with the previous snapshot
        held by the evaluator; only snapshots generated within 60 minutes
        of each other count as a sudden change

Each alert type has its own cooldown, tracked with "alert:<type>" subject
keys. When several alerts trigger, the most severe one is sent.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal

from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.evaluators.base import EvaluationContext, EvaluationResult, Evaluator
from hobbyweather.notifications.models import (
    NotificationConditions,
    NotificationPayload,
    NotificationPriority,
    NotificationType,
)
from hobbyweather.notifications.store import NotificationStore
from hobbyweather.weather.models import WeatherForecast
from hobbyweather.weather.provider import ForecastProvider

logger = get_logger(__name__)

Metric = Literal["precipitation", "temperature", "wind", "uv", "visibility"]

CHANGE_WINDOW = timedelta(minutes=60)
CHANGE_COOLDOWN_MINUTES = 60

TEMPERATURE_CHANGE = 5.0
TEMPERATURE_CHANGE_URGENT = 10.0
PRECIPITATION_CHANGE = 30.0
PRECIPITATION_CHANGE_URGENT = 50.0
WIND_CHANGE = 10.0
WIND_CHANGE_URGENT = 15.0

SEVERITY_ICONS = {
    NotificationPriority.LOW: "🌤️",
    NotificationPriority.MEDIUM: "⚠️",
    NotificationPriority.HIGH: "🌧️",
    NotificationPriority.URGENT: "⛈️",
}

SEVERITY_TITLES = {
    NotificationPriority.LOW: "Weather info",
    NotificationPriority.MEDIUM: "Weather advisory",
    NotificationPriority.HIGH: "Weather warning",
    NotificationPriority.URGENT: "Sudden weather change",
}


@dataclass(frozen=True)
class AlertCondition:
    metric: Metric
    comparison: Literal["above", "below"]
    threshold: float

    def is_met(self, value: float | None) -> bool:
        if value is None:
            return False
        if self.comparison == "above":
            return value > self.threshold
        return value < self.threshold


@dataclass(frozen=True)
class AlertRule:
    alert_type: str
    conditions: tuple[AlertCondition, ...]
    severity: NotificationPriority
    cooldown_minutes: int


DEFAULT_RULES: tuple[AlertRule, ...] = (
    AlertRule("rain-warning", (AlertCondition("precipitation", "above", 50),), NotificationPriority.MEDIUM, 60),
    AlertRule("high-wind", (AlertCondition("wind", "above", 15),), NotificationPriority.MEDIUM, 180),
    AlertRule("poor-visibility", (AlertCondition("visibility", "below", 2),), NotificationPriority.HIGH, 120),
    AlertRule("extreme-uv", (AlertCondition("uv", "above", 8),), NotificationPriority.MEDIUM, 240),
)


@dataclass
class Alert:
    alert_type: str
    severity: NotificationPriority
    message: str
    cooldown_minutes: int
    details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def subject_key(self) -> str:
        return f"alert:{self.alert_type}"


def metric_value(forecast: WeatherForecast, metric: Metric) -> float | None:
    """Today's value for a metric, or None when the forecast lacks it."""
    today = forecast.today
    if metric == "precipitation":
        return today.precipitation_probability if today else None
    if metric == "temperature":
        return today.temperature.day if today else None
    if metric == "wind":
        return today.wind_speed if today else forecast.current.wind_speed
    if metric == "uv":
        if today and today.uv_index is not None:
            return today.uv_index
        return forecast.current.uv_index
    if metric == "visibility":
        return forecast.current.visibility
    return None


def rules_for(conditions: NotificationConditions, rules: tuple[AlertRule, ...] = DEFAULT_RULES) -> tuple[AlertRule, ...]:
    """Apply per-config threshold overrides to the rule table."""
    overrides = {
        "precipitation": conditions.precipitation_threshold,
        "wind": conditions.wind_speed_threshold,
    }
    adjusted = []
    for rule in rules:
        new_conditions = tuple(
            AlertCondition(c.metric, c.comparison, overrides[c.metric])
            if overrides.get(c.metric) is not None
            else c
            for c in rule.conditions
        )
        adjusted.append(AlertRule(rule.alert_type, new_conditions, rule.severity, rule.cooldown_minutes))
    return tuple(adjusted)


def _fmt(value: float) -> str:
    return f"{round(value, 1):g}"


def rule_message(alert_type: str, value: float | None) -> str:
    if value is None:
        return f"Weather alert: {alert_type}"
    v = _fmt(value)
    messages = {
        "rain-warning": f"Rain is likely ({v}% chance of precipitation)",
        "high-wind": f"Strong wind expected ({v} m/s)",
        "poor-visibility": f"Poor visibility expected ({v} km)",
        "extreme-uv": f"UV index is very high ({v})",
    }
    return messages.get(alert_type, f"Weather alert: {alert_type}")


def evaluate_rule(rule: AlertRule, forecast: WeatherForecast) -> Alert | None:
    details = []
    for condition in rule.conditions:
        value = metric_value(forecast, condition.metric)
        details.append(
            {
                "metric": condition.metric,
                "comparison": condition.comparison,
                "threshold": condition.threshold,
                "current_value": value,
            }
        )
        if not condition.is_met(value):
            return None

    return Alert(
        alert_type=rule.alert_type,
        severity=rule.severity,
        message=rule_message(rule.alert_type, details[0]["current_value"] if details else None),
        cooldown_minutes=rule.cooldown_minutes,
        details=details,
    )


def detect_changes(
    previous: WeatherForecast,
    current: WeatherForecast,
    temperature_threshold: float = TEMPERATURE_CHANGE,
) -> list[Alert]:
    """Sudden-change alerts between two snapshots taken within the change window."""
    if abs(current.generated_at - previous.generated_at) > CHANGE_WINDOW:
        return []

    alerts: list[Alert] = []

    prev_temp = metric_value(previous, "temperature")
    cur_temp = metric_value(current, "temperature")
    if prev_temp is not None and cur_temp is not None:
        delta = cur_temp - prev_temp
        if abs(delta) >= temperature_threshold:
            rising = delta > 0
            alerts.append(
                Alert(
                    alert_type="temperature-sudden-rise" if rising else "temperature-sudden-drop",
                    severity=NotificationPriority.URGENT
                    if abs(delta) >= TEMPERATURE_CHANGE_URGENT
                    else NotificationPriority.HIGH,
                    message=f"Temperature {'rose' if rising else 'dropped'} by {_fmt(abs(delta))}°C",
                    cooldown_minutes=CHANGE_COOLDOWN_MINUTES,
                    details=[{"metric": "temperature", "previous_value": prev_temp, "current_value": cur_temp}],
                )
            )

    prev_pop = metric_value(previous, "precipitation")
    cur_pop = metric_value(current, "precipitation")
    if prev_pop is not None and cur_pop is not None:
        delta = cur_pop - prev_pop
        if delta >= PRECIPITATION_CHANGE:
            alerts.append(
                Alert(
                    alert_type="precipitation-sudden-increase",
                    severity=NotificationPriority.URGENT
                    if delta >= PRECIPITATION_CHANGE_URGENT
                    else NotificationPriority.HIGH,
                    message=f"Chance of rain jumped by {_fmt(delta)} points to {_fmt(cur_pop)}%",
                    cooldown_minutes=CHANGE_COOLDOWN_MINUTES,
                    details=[{"metric": "precipitation", "previous_value": prev_pop, "current_value": cur_pop}],
                )
            )

    prev_wind = metric_value(previous, "wind")
    cur_wind = metric_value(current, "wind")
    if prev_wind is not None and cur_wind is not None:
        delta = cur_wind - prev_wind
        if delta >= WIND_CHANGE:
            alerts.append(
                Alert(
                    alert_type="wind-sudden-increase",
                    severity=NotificationPriority.URGENT if delta >= WIND_CHANGE_URGENT else NotificationPriority.HIGH,
                    message=f"Wind speed increased by {_fmt(delta)} m/s",
                    cooldown_minutes=CHANGE_COOLDOWN_MINUTES,
                    details=[{"metric": "wind", "previous_value": prev_wind, "current_value": cur_wind}],
                )
            )

    return alerts


class WeatherAlertEvaluator(Evaluator):
    notification_type = NotificationType.WEATHER_ALERT

    def __init__(self, forecast_provider: ForecastProvider, rules: tuple[AlertRule, ...] = DEFAULT_RULES):
        self.forecast_provider = forecast_provider
        self.rules = rules
        # Snapshot for change detection, owned by this instance
        self.previous_forecast: WeatherForecast | None = None

    async def evaluate(self, context: EvaluationContext) -> EvaluationResult:
        try:
            forecast = await self.forecast_provider.get_current_forecast()
        except Exception as e:
            logger.warning("weather_alert_forecast_failed", error=str(e))
            forecast = None
        if forecast is None:
            return EvaluationResult.skip("forecast unavailable")

        conditions = context.config.conditions
        candidates = [a for a in (evaluate_rule(r, forecast) for r in rules_for(conditions, self.rules)) if a]

        previous, self.previous_forecast = self.previous_forecast, forecast
        if previous is not None:
            temperature_threshold = conditions.temperature_change_threshold or TEMPERATURE_CHANGE
            candidates.extend(detect_changes(previous, forecast, temperature_threshold))

        if not candidates:
            return EvaluationResult.skip("no alert conditions met")

        active: list[Alert] = []
        cooled: list[str] = []
        for alert in candidates:
            since = context.now - timedelta(minutes=alert.cooldown_minutes)
            recent = await context.store.recent_subjects(self.notification_type, [alert.subject_key], since)
            if recent:
                cooled.append(alert.alert_type)
            else:
                active.append(alert)

        if not active:
            return EvaluationResult.skip("cooldown active", alerts=cooled)

        # Most severe first; ties keep detection order
        chosen = max(active, key=lambda a: a.severity.rank)
        payload = build_payload(chosen, context.now)
        return EvaluationResult.notify(
            payload,
            alert_type=chosen.alert_type,
            severity=chosen.severity.value,
            other_alerts=[a.alert_type for a in active if a is not chosen],
            cooled_down=cooled,
        )

    async def get_statistics(self, store: NotificationStore) -> dict[str, Any]:
        history = await store.get_history(self.notification_type)
        by_type: Counter[str] = Counter()
        by_severity: Counter[str] = Counter()
        for entry in history:
            if entry.data.get("alert_type"):
                by_type[entry.data["alert_type"]] += 1
            if entry.data.get("severity"):
                by_severity[entry.data["severity"]] += 1

        return {
            "total_alerts": len(history),
            "by_type": dict(by_type),
            "by_severity": dict(by_severity),
            "last_alert_time": history[0].sent_at.isoformat() if history else None,
        }


def build_payload(alert: Alert, now: datetime) -> NotificationPayload:
    icon = SEVERITY_ICONS[alert.severity]
    return NotificationPayload(
        type=NotificationType.WEATHER_ALERT,
        title=f"{icon} {SEVERITY_TITLES[alert.severity]}",
        message=alert.message,
        icon=icon,
        data={
            "alert_type": alert.alert_type,
            "severity": alert.severity.value,
            "details": alert.details,
            "timestamp": now.isoformat(),
        },
        require_interaction=True,
        subject_keys=[alert.subject_key],
    )
