"""Tests for hobbyweather/notifications/evaluators/weather_alert.py"""

from datetime import datetime, timedelta

import pytest

from hobbyweather.notifications.evaluators.base import EvaluationContext
from hobbyweather.notifications.evaluators.weather_alert import (
    DEFAULT_RULES,
    AlertCondition,
    WeatherAlertEvaluator,
    detect_changes,
    evaluate_rule,
    rules_for,
)
from hobbyweather.notifications.models import (
    NotificationConditions,
    NotificationFrequency,
    NotificationHistory,
    NotificationPriority,
    NotificationType,
)
from tests.fakes import StaticForecastProvider, make_config, make_forecast

NOON = datetime(2026, 3, 3, 12, 0)


async def alert_config(store, **conditions):
    return await store.create_config(
        make_config(
            NotificationType.WEATHER_ALERT,
            NotificationFrequency.IMMEDIATE,
            conditions=NotificationConditions(**conditions),
        )
    )


class TestConditions:
    def test_strict_comparisons(self):
        above = AlertCondition("precipitation", "above", 50)
        below = AlertCondition("visibility", "below", 2)

        assert above.is_met(50.1)
        assert not above.is_met(50)
        assert below.is_met(1.9)
        assert not below.is_met(2)

    def test_missing_value_is_not_met(self):
        assert not AlertCondition("uv", "above", 8).is_met(None)

    def test_rule_table_uses_config_overrides(self):
        rules = {r.alert_type: r for r in rules_for(NotificationConditions(precipitation_threshold=70, wind_speed_threshold=10))}

        assert rules["rain-warning"].conditions[0].threshold == 70
        assert rules["high-wind"].conditions[0].threshold == 10
        assert rules["poor-visibility"].conditions[0].threshold == 2

    def test_rule_table_defaults(self):
        assert rules_for(NotificationConditions()) == DEFAULT_RULES


class TestRules:
    def test_rain_warning(self):
        rain = next(r for r in DEFAULT_RULES if r.alert_type == "rain-warning")

        alert = evaluate_rule(rain, make_forecast(NOON, pop=0.8))

        assert alert.severity == NotificationPriority.MEDIUM
        assert alert.subject_key == "alert:rain-warning"
        assert alert.message == "Rain is likely (80% chance of precipitation)"
        assert alert.details[0]["current_value"] == 80.0

    def test_uv_without_data_never_triggers(self):
        uv = next(r for r in DEFAULT_RULES if r.alert_type == "extreme-uv")

        assert evaluate_rule(uv, make_forecast(NOON, uv_index=None)) is None
        assert evaluate_rule(uv, make_forecast(NOON, uv_index=9)) is not None


class TestSuddenChange:
    def test_change_outside_window_ignored(self):
        previous = make_forecast(NOON, temp=15)
        current = make_forecast(NOON + timedelta(minutes=90), temp=25)

        assert detect_changes(previous, current) == []

    def test_large_change_inside_window_is_urgent(self):
        previous = make_forecast(NOON, temp=15)
        current = make_forecast(NOON + timedelta(minutes=30), temp=25)

        alerts = detect_changes(previous, current)

        assert [a.alert_type for a in alerts] == ["temperature-sudden-rise"]
        assert alerts[0].severity == NotificationPriority.URGENT
        assert alerts[0].message == "Temperature rose by 10°C"

    def test_moderate_drop_is_high(self):
        alerts = detect_changes(make_forecast(NOON, temp=20), make_forecast(NOON + timedelta(minutes=20), temp=14))

        assert alerts[0].alert_type == "temperature-sudden-drop"
        assert alerts[0].severity == NotificationPriority.HIGH

    def test_precipitation_and_wind_jumps(self):
        alerts = detect_changes(
            make_forecast(NOON, pop=0.1, wind=2),
            make_forecast(NOON + timedelta(minutes=10), pop=0.5, wind=13),
        )

        by_type = {a.alert_type: a.severity for a in alerts}
        assert by_type == {
            "precipitation-sudden-increase": NotificationPriority.HIGH,
            "wind-sudden-increase": NotificationPriority.HIGH,
        }

    def test_custom_temperature_threshold(self):
        previous = make_forecast(NOON, temp=20)
        current = make_forecast(NOON + timedelta(minutes=10), temp=23)

        assert detect_changes(previous, current) == []
        assert len(detect_changes(previous, current, temperature_threshold=3)) == 1


class TestEvaluator:
    @pytest.mark.asyncio
    async def test_snapshots_ninety_minutes_apart_do_not_alert(self, store):
        config = await alert_config(store)
        provider = StaticForecastProvider(make_forecast(NOON, temp=15))
        evaluator = WeatherAlertEvaluator(provider)

        await evaluator.evaluate(EvaluationContext(config, NOON, store))
        provider.forecast = make_forecast(NOON + timedelta(minutes=90), temp=25)
        result = await evaluator.evaluate(EvaluationContext(config, NOON + timedelta(minutes=90), store))

        assert not result.should_notify
        assert result.reason == "no alert conditions met"

    @pytest.mark.asyncio
    async def test_snapshots_thirty_minutes_apart_alert_urgently(self, store):
        config = await alert_config(store)
        provider = StaticForecastProvider(make_forecast(NOON, temp=15))
        evaluator = WeatherAlertEvaluator(provider)

        first = await evaluator.evaluate(EvaluationContext(config, NOON, store))
        provider.forecast = make_forecast(NOON + timedelta(minutes=30), temp=25)
        result = await evaluator.evaluate(EvaluationContext(config, NOON + timedelta(minutes=30), store))

        assert not first.should_notify
        assert result.should_notify
        assert result.payload.data["severity"] == "urgent"
        assert result.payload.data["alert_type"] == "temperature-sudden-rise"
        assert result.payload.title == "⛈️ Sudden weather change"
        assert result.payload.require_interaction is True

    @pytest.mark.asyncio
    async def test_config_threshold_raises_rain_bar(self, store):
        strict = await alert_config(store, precipitation_threshold=70)
        lenient = await alert_config(store)
        provider = StaticForecastProvider(make_forecast(NOON, pop=0.6))

        strict_result = await WeatherAlertEvaluator(provider).evaluate(EvaluationContext(strict, NOON, store))
        lenient_result = await WeatherAlertEvaluator(provider).evaluate(EvaluationContext(lenient, NOON, store))

        assert not strict_result.should_notify
        assert lenient_result.payload.data["alert_type"] == "rain-warning"
        assert lenient_result.payload.title == "⚠️ Weather advisory"

    @pytest.mark.asyncio
    async def test_most_severe_alert_wins(self, store):
        config = await alert_config(store)
        provider = StaticForecastProvider(make_forecast(NOON, pop=0.8, visibility=1.0))

        result = await WeatherAlertEvaluator(provider).evaluate(EvaluationContext(config, NOON, store))

        assert result.payload.data["alert_type"] == "poor-visibility"
        assert result.payload.title == "🌧️ Weather warning"
        assert result.details["other_alerts"] == ["rain-warning"]
        assert result.payload.subject_keys == ["alert:poor-visibility"]

    @pytest.mark.asyncio
    async def test_cooldown_per_alert_type(self, store):
        config = await alert_config(store)
        await store.add_history(
            NotificationHistory(
                config_id=config.id,
                type=NotificationType.WEATHER_ALERT,
                title="⚠️ Weather advisory",
                message="Rain is likely",
                sent_at=NOON - timedelta(minutes=30),
                subject_keys=["alert:rain-warning"],
            )
        )

        rain_only = StaticForecastProvider(make_forecast(NOON, pop=0.8))
        cooled = await WeatherAlertEvaluator(rain_only).evaluate(EvaluationContext(config, NOON, store))
        rain_and_wind = StaticForecastProvider(make_forecast(NOON, pop=0.8, wind=20))
        wind = await WeatherAlertEvaluator(rain_and_wind).evaluate(EvaluationContext(config, NOON, store))

        assert cooled.reason == "cooldown active"
        assert cooled.details["alerts"] == ["rain-warning"]
        assert wind.payload.data["alert_type"] == "high-wind"

    @pytest.mark.asyncio
    async def test_forecast_unavailable(self, store):
        config = await alert_config(store)
        evaluator = WeatherAlertEvaluator(StaticForecastProvider(error=RuntimeError("down")))

        result = await evaluator.evaluate(EvaluationContext(config, NOON, store))

        assert result.reason == "forecast unavailable"

    @pytest.mark.asyncio
    async def test_statistics(self, store):
        config = await alert_config(store)
        evaluator = WeatherAlertEvaluator(StaticForecastProvider(make_forecast(NOON, pop=0.8)))
        result = await evaluator.evaluate(EvaluationContext(config, NOON, store))
        await store.add_history(
            NotificationHistory(
                config_id=config.id,
                type=NotificationType.WEATHER_ALERT,
                title=result.payload.title,
                message=result.payload.message,
                sent_at=NOON,
                data=result.payload.data,
                subject_keys=result.payload.subject_keys,
            )
        )

        stats = await evaluator.get_statistics(store)

        assert stats["total_alerts"] == 1
        assert stats["by_type"] == {"rain-warning": 1}
        assert stats["by_severity"] == {"medium": 1}
