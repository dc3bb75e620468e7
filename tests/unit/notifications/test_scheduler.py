"""Tests for hobbyweather/notifications/scheduler.py"""

from datetime import datetime, timedelta

import pytest

from hobbyweather.notifications.clock import MAX_TIMER_DELAY_SECONDS
from hobbyweather.notifications.evaluators.base import EvaluationResult
from hobbyweather.notifications.models import (
    NotificationFrequency,
    NotificationHistory,
    NotificationType,
)
from hobbyweather.notifications.scheduler import NotificationScheduler
from tests.fakes import RecordingDispatcher, StubEvaluator, make_config, settle

# Clock fixture starts at Tuesday 2026-03-03 12:00
NOON = datetime(2026, 3, 3, 12, 0)


def build_scheduler(store, clock, dispatcher=None, evaluators=None, **kwargs):
    dispatcher = dispatcher or RecordingDispatcher(clock)
    evaluators = evaluators or {t: StubEvaluator(t) for t in NotificationType}
    return NotificationScheduler(store, dispatcher, evaluators, clock=clock, **kwargs)


def daily_at_one(**kwargs):
    return make_config(
        NotificationType.REGULAR_REPORT,
        NotificationFrequency.DAILY,
        windows=[("13:00", "23:59")],
        **kwargs,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────────────────────


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_twice_arms_once(self, store, clock):
        await store.create_config(daily_at_one())
        scheduler = build_scheduler(store, clock)

        await scheduler.start()
        await scheduler.start()

        assert scheduler.is_running
        assert len(scheduler.get_current_tasks()) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_twice_is_noop(self, store, clock):
        await store.create_config(daily_at_one())
        scheduler = build_scheduler(store, clock)
        await scheduler.start()

        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.get_current_tasks() == []

    @pytest.mark.asyncio
    async def test_only_enabled_configs_are_armed(self, store, clock):
        enabled = await store.create_config(daily_at_one())
        await store.create_config(daily_at_one(enabled=False))
        scheduler = build_scheduler(store, clock)

        await scheduler.start()

        assert {t.config_id for t in scheduler.get_current_tasks()} == {enabled.id}
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_stopped_scheduler_sends_nothing(self, store, clock):
        await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        scheduler.stop()
        await clock.advance(hours=2)

        assert dispatcher.sent == []


# ─────────────────────────────────────────────────────────────────────────────
# Scheduling
# ─────────────────────────────────────────────────────────────────────────────


class TestScheduleConfigTasks:
    @pytest.mark.asyncio
    async def test_rescheduling_replaces_previous_tasks(self, store, clock):
        config = await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        first = scheduler.schedule_config_tasks(config)
        config.schedule.time_of_day[0].start = "14:00"
        await store.update_config(config)
        second = scheduler.schedule_config_tasks(config)

        assert [t.id for t in scheduler.get_current_tasks()] == [t.id for t in second]
        assert {t.id for t in first}.isdisjoint(t.id for t in second)

        await clock.advance(hours=3)

        assert dispatcher.sent_at == [datetime(2026, 3, 3, 14, 0)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_same_runs_twice_do_not_duplicate(self, store, clock):
        config = await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        scheduler.schedule_config_tasks(config)
        scheduler.schedule_config_tasks(config)
        await clock.advance(hours=1)

        assert len(dispatcher.sent) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_caps_tasks_per_config(self, store, clock):
        windows = [(f"{h:02d}:00", f"{h:02d}:30") for h in (13, 14, 15, 16, 17)]
        config = await store.create_config(
            make_config(NotificationType.REGULAR_REPORT, NotificationFrequency.DAILY, windows=windows)
        )
        scheduler = build_scheduler(store, clock, max_tasks_per_config=3)
        await scheduler.start()

        tasks = scheduler.get_current_tasks()

        assert [t.next_run.hour for t in tasks] == [13, 14, 15]
        assert all(t.config_id == config.id for t in tasks)
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_unsaved_config_rejected(self, store, clock):
        scheduler = build_scheduler(store, clock)
        await scheduler.start()

        with pytest.raises(ValueError):
            scheduler.schedule_config_tasks(daily_at_one())
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_not_running_or_disabled_arms_nothing(self, store, clock):
        config = await store.create_config(daily_at_one())
        scheduler = build_scheduler(store, clock)

        assert scheduler.schedule_config_tasks(config) == []

        await scheduler.start()
        config.enabled = False
        assert scheduler.schedule_config_tasks(config) == []
        assert scheduler.get_current_tasks() == []
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_unschedule_returns_removed_count(self, store, clock):
        config = await store.create_config(
            make_config(
                NotificationType.REGULAR_REPORT,
                NotificationFrequency.DAILY,
                windows=[("13:00", "13:30"), ("18:00", "18:30")],
            )
        )
        scheduler = build_scheduler(store, clock)
        await scheduler.start()

        assert scheduler.unschedule_config_tasks(config.id) == 2
        assert scheduler.unschedule_config_tasks(config.id) == 0
        scheduler.stop()


# ─────────────────────────────────────────────────────────────────────────────
# Execution
# ─────────────────────────────────────────────────────────────────────────────


class TestExecution:
    @pytest.mark.asyncio
    async def test_fires_records_history_and_rearms(self, store, clock):
        config = await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        await clock.advance(hours=1)

        assert dispatcher.sent_at == [datetime(2026, 3, 3, 13, 0)]
        history = await store.get_history(config_id=config.id)
        assert len(history) == 1
        assert history[0].title == "Test"
        assert [t.next_run for t in scheduler.get_current_tasks()] == [datetime(2026, 3, 4, 13, 0)]
        assert scheduler.sent_count == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_skipped_evaluation_still_rearms(self, store, clock):
        await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        evaluators = {
            t: StubEvaluator(t, EvaluationResult.skip("no active hobbies")) for t in NotificationType
        }
        scheduler = build_scheduler(store, clock, dispatcher, evaluators)
        await scheduler.start()

        await clock.advance(hours=1)

        assert dispatcher.sent == []
        assert scheduler.skipped_count == 1
        assert [t.next_run for t in scheduler.get_current_tasks()] == [datetime(2026, 3, 4, 13, 0)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_quiet_hours_skip_without_evaluating(self, store, clock):
        await store.create_config(daily_at_one())
        await store.update_settings(quiet_hours={"start": "12:30", "end": "14:00"})
        evaluator = StubEvaluator(NotificationType.REGULAR_REPORT)
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher, {NotificationType.REGULAR_REPORT: evaluator})
        await scheduler.start()

        await clock.advance(hours=1)

        assert dispatcher.sent == []
        assert evaluator.contexts == []
        assert len(scheduler.get_current_tasks()) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_daily_limit_counts_same_type_only(self, store, clock):
        report = await store.create_config(daily_at_one())
        await store.update_settings(max_daily_notifications=1)
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)

        await store.add_history(
            NotificationHistory(
                config_id=report.id,
                type=NotificationType.REGULAR_REPORT,
                title="Earlier",
                message="Earlier today",
                sent_at=NOON.replace(hour=8),
            )
        )
        await scheduler.start()
        await clock.advance(hours=1)

        assert dispatcher.sent == []
        assert scheduler.skipped_count == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_daily_limit_ignores_other_types(self, store, clock):
        await store.create_config(daily_at_one())
        alert = await store.create_config(
            make_config(NotificationType.WEATHER_ALERT, NotificationFrequency.DAILY, enabled=False)
        )
        await store.update_settings(max_daily_notifications=1)
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)

        await store.add_history(
            NotificationHistory(
                config_id=alert.id,
                type=NotificationType.WEATHER_ALERT,
                title="Rain",
                message="Rain later",
                sent_at=NOON.replace(hour=8),
            )
        )
        await scheduler.start()
        await clock.advance(hours=1)

        assert len(dispatcher.sent) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_failed_send_is_not_recorded(self, store, clock):
        config = await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock, succeed=False)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        await clock.advance(hours=1)

        assert len(dispatcher.sent) == 1
        assert await store.get_history(config_id=config.id) == []
        assert len(scheduler.get_current_tasks()) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_evaluator_error_recorded_and_rearmed(self, store, clock):
        config = await store.create_config(daily_at_one())

        def explode(context):
            raise RuntimeError("boom")

        evaluators = {
            NotificationType.REGULAR_REPORT: StubEvaluator(NotificationType.REGULAR_REPORT, behaviour=explode)
        }
        scheduler = build_scheduler(store, clock, evaluators=evaluators)
        await scheduler.start()

        await clock.advance(hours=1)

        status = scheduler.get_status()
        assert status["last_error"]["error"] == "RuntimeError: boom"
        assert status["last_error"]["config_id"] == config.id
        assert status["executing"] == 0
        assert [t.next_run for t in scheduler.get_current_tasks()] == [datetime(2026, 3, 4, 13, 0)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_disabled_during_execution_is_not_rearmed(self, store, clock):
        config = await store.create_config(daily_at_one())

        async def disable_midway(context):
            await context.store.toggle_config(config.id, False)
            return EvaluationResult.skip("no recommendations generated")

        evaluators = {
            NotificationType.REGULAR_REPORT: StubEvaluator(NotificationType.REGULAR_REPORT, behaviour=disable_midway)
        }
        scheduler = build_scheduler(store, clock, evaluators=evaluators)
        await scheduler.start()

        await clock.advance(hours=1)

        assert scheduler.get_current_tasks() == []
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_deleted_during_send_counts_without_history(self, store, clock):
        config = await store.create_config(daily_at_one())

        class DeletingDispatcher(RecordingDispatcher):
            async def _deliver(self, payload):
                await store.delete_config(config.id)
                return await super()._deliver(payload)

        dispatcher = DeletingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        await clock.advance(hours=1)

        status = scheduler.get_status()
        assert len(dispatcher.sent) == 1
        assert status["sent_count"] == 1
        assert status["last_error"] is None
        assert await store.get_history() == []
        assert scheduler.get_current_tasks() == []
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_reschedule_during_execution_keeps_only_new_runs(self, store, clock):
        config = await store.create_config(daily_at_one())
        holder = {}

        def reschedule_midway(context):
            holder["armed"] = holder["scheduler"].schedule_config_tasks(context.config)
            return EvaluationResult.skip("no recommendations generated")

        evaluators = {
            NotificationType.REGULAR_REPORT: StubEvaluator(NotificationType.REGULAR_REPORT, behaviour=reschedule_midway)
        }
        scheduler = build_scheduler(store, clock, evaluators=evaluators)
        holder["scheduler"] = scheduler
        await scheduler.start()

        await clock.advance(hours=1)

        tasks = scheduler.get_current_tasks()
        assert [t.id for t in tasks] == [t.id for t in holder["armed"]]
        assert [t.next_run for t in tasks] == [datetime(2026, 3, 4, 13, 0)]
        assert all(t.config_id == config.id for t in tasks)
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_immediate_config_rechecks_after_interval(self, store, clock):
        await store.create_config(make_config(NotificationType.WEATHER_ALERT, NotificationFrequency.IMMEDIATE))
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher, immediate_recheck_minutes=15)
        await scheduler.start()

        await clock.advance(seconds=1)

        first_run = NOON + timedelta(seconds=1)
        assert dispatcher.sent_at == [first_run]
        assert [t.next_run for t in scheduler.get_current_tasks()] == [first_run + timedelta(minutes=15)]

        await clock.advance(minutes=15)

        assert dispatcher.sent_at == [first_run, first_run + timedelta(minutes=15)]
        scheduler.stop()


# ─────────────────────────────────────────────────────────────────────────────
# Long delays, sweep and catch-up
# ─────────────────────────────────────────────────────────────────────────────


class TestTimers:
    @pytest.mark.asyncio
    async def test_forty_day_run_fires_on_time(self, store, clock):
        forty_days = 40 * 24 * 60
        await store.create_config(make_config(frequency=NotificationFrequency.CUSTOM, custom_interval=forty_days))
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher, check_interval_seconds=365 * 86400)
        await scheduler.start()
        await settle()

        target = NOON + timedelta(days=40)
        assert scheduler.get_current_tasks()[0].next_run == target
        assert MAX_TIMER_DELAY_SECONDS in clock.sleep_calls

        await clock.advance(days=39)
        assert dispatcher.sent == []

        await clock.advance(hours=23, minutes=59)
        assert dispatcher.sent == []

        await clock.advance(minutes=1)
        assert dispatcher.sent_at == [target]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_run_due_tasks_fires_overdue(self, store, clock):
        await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        clock.jump(hours=2)
        fired = scheduler.run_due_tasks()
        await settle()

        assert fired == 1
        assert len(dispatcher.sent) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_catch_up_restarts_from_now(self, store, clock):
        await store.create_config(daily_at_one())
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()

        # Friday 14:00, three missed runs
        clock.jump(days=3, hours=2)
        scheduler.run_due_tasks()
        await settle()

        assert len(dispatcher.sent) == 1
        assert [t.next_run for t in scheduler.get_current_tasks()] == [datetime(2026, 3, 7, 13, 0)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_future_tasks_are_not_swept(self, store, clock):
        await store.create_config(daily_at_one())
        scheduler = build_scheduler(store, clock)
        await scheduler.start()

        assert scheduler.run_due_tasks() == 0
        scheduler.stop()


# ─────────────────────────────────────────────────────────────────────────────
# Manual trigger and status
# ─────────────────────────────────────────────────────────────────────────────


class TestRunNowAndStatus:
    @pytest.mark.asyncio
    async def test_run_now_sends_without_touching_armed_runs(self, store, clock):
        config = await store.create_config(make_config(NotificationType.REGULAR_REPORT, NotificationFrequency.DAILY))
        dispatcher = RecordingDispatcher(clock)
        scheduler = build_scheduler(store, clock, dispatcher)
        await scheduler.start()
        before = [t.id for t in scheduler.get_current_tasks()]

        result = await scheduler.run_now(config.id)

        assert result["success"] is True
        assert result["outcome"] == "sent"
        assert result["payload"]["title"] == "Test"
        assert [t.id for t in scheduler.get_current_tasks()] == before
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_run_now_unknown_config(self, store, clock):
        scheduler = build_scheduler(store, clock)

        result = await scheduler.run_now(999)

        assert result["success"] is False
        assert "999" in result["error"]

    @pytest.mark.asyncio
    async def test_status(self, store, clock):
        config = await store.create_config(daily_at_one())
        scheduler = build_scheduler(store, clock)
        await scheduler.start()

        status = scheduler.get_status()

        assert status["running"] is True
        assert status["task_count"] == 1
        assert status["next_task"]["config_id"] == config.id
        assert status["next_task"]["next_run"] == "2026-03-03T13:00:00"
        assert status["last_error"] is None
        scheduler.stop()
