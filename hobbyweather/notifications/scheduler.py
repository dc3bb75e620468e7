"""
Tool: Notification Scheduler
Purpose: Arm, fire and re-arm notification runs for every enabled config

Each armed run is a ScheduledTask driven by one asyncio task that waits
on the clock until the run time, chunking long waits, then executes:

    1. Policy: allowed time window / weekday / quiet hours, daily cap
    2. Evaluate: the evaluator for the config's type builds a payload
    3. Send: via the dispatcher; history is written on success
    4. Re-arm: next run computed from the fired run time
    5. Remove the fired task, whatever the outcome

A periodic sweep fires any task whose run time has already passed.

Usage:
    scheduler = NotificationScheduler(store, dispatcher, evaluators)
    await scheduler.start()
    scheduler.get_status()
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Mapping

from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.clock import MAX_TIMER_DELAY_SECONDS, Clock, SystemClock
from hobbyweather.notifications.dispatcher import NotificationDispatcher
from hobbyweather.notifications.evaluators.base import EvaluationContext, Evaluator
from hobbyweather.notifications.models import (
    NotificationConfig,
    NotificationFrequency,
    NotificationHistory,
    NotificationType,
    ScheduledTask,
    day_of_week,
)
from hobbyweather.notifications.store import NotificationStore

logger = get_logger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 60.0
DEFAULT_MAX_TASKS_PER_CONFIG = 3
DEFAULT_IMMEDIATE_RECHECK_MINUTES = 15
IMMEDIATE_DELAY = timedelta(seconds=1)


def calculate_next_runs(config: NotificationConfig, from_time: datetime) -> list[datetime]:
    """
    Upcoming run times for a config, strictly after `from_time`, ascending.

    immediate: one run a second later
    custom: one run custom_interval minutes later
    daily: per window start, the next occurrence on an allowed weekday
    weekly: per (allowed weekday, window start), the next occurrence
    """
    schedule = config.schedule

    if schedule.frequency == NotificationFrequency.IMMEDIATE:
        return [from_time + IMMEDIATE_DELAY]

    if schedule.frequency == NotificationFrequency.CUSTOM:
        return [from_time + timedelta(minutes=schedule.custom_interval or 0)]

    allowed_days = set(schedule.days_of_week)
    if not allowed_days:
        return []

    runs: set[datetime] = set()

    if schedule.frequency == NotificationFrequency.DAILY:
        for window in schedule.time_of_day:
            start = window.start_time
            candidate = from_time.replace(hour=start.hour, minute=start.minute, second=0, microsecond=0)
            if candidate <= from_time:
                candidate += timedelta(days=1)
            for _ in range(7):
                if day_of_week(candidate) in allowed_days:
                    runs.add(candidate)
                    break
                candidate += timedelta(days=1)

    elif schedule.frequency == NotificationFrequency.WEEKLY:
        today = day_of_week(from_time)
        for day in sorted(allowed_days):
            for window in schedule.time_of_day:
                start = window.start_time
                candidate = from_time.replace(hour=start.hour, minute=start.minute, second=0, microsecond=0)
                candidate += timedelta(days=(day - today) % 7)
                if candidate <= from_time:
                    candidate += timedelta(days=7)
                runs.add(candidate)

    return sorted(runs)


class NotificationScheduler:
    """Owns the armed ScheduledTasks and executes them on time."""

    def __init__(
        self,
        store: NotificationStore,
        dispatcher: NotificationDispatcher,
        evaluators: Mapping[NotificationType, Evaluator],
        clock: Clock | None = None,
        check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        max_tasks_per_config: int = DEFAULT_MAX_TASKS_PER_CONFIG,
        immediate_recheck_minutes: int = DEFAULT_IMMEDIATE_RECHECK_MINUTES,
        max_timer_delay: float = MAX_TIMER_DELAY_SECONDS,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.evaluators = dict(evaluators)
        self.clock = clock or store.clock or SystemClock()
        self.check_interval_seconds = check_interval_seconds
        self.max_tasks_per_config = max_tasks_per_config
        self.immediate_recheck = timedelta(minutes=immediate_recheck_minutes)
        self.max_timer_delay = max_timer_delay

        self._running = False
        self._tasks: dict[str, ScheduledTask] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._executing: set[str] = set()
        self._in_flight: set[asyncio.Task] = set()
        self._generations: dict[int, int] = {}
        self._sweep_task: asyncio.Task | None = None

        self.last_error: dict[str, Any] | None = None
        self.executed_count = 0
        self.sent_count = 0
        self.skipped_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Load enabled configs and arm their runs. No-op if already running."""
        if self._running:
            return

        self._running = True
        try:
            configs = await self.store.get_enabled_configs()
        except Exception:
            self._running = False
            raise

        # stop() may have run while configs were loading
        if not self._running:
            return

        for config in configs:
            self.schedule_config_tasks(config)

        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="notification-sweep")
        logger.info("scheduler_started", configs=len(configs), task_count=len(self._tasks))

    def stop(self) -> None:
        """Cancel all armed runs and the sweep. No-op if not running."""
        if not self._running:
            return

        self._running = False

        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None

        for task_id, timer in self._timers.items():
            # In-flight executions finish; they will not re-arm
            if task_id not in self._executing:
                timer.cancel()

        for config_id in {t.config_id for t in self._tasks.values()}:
            self._bump_generation(config_id)

        cancelled = len(self._tasks)
        self._timers.clear()
        self._tasks.clear()
        logger.info("scheduler_stopped", cancelled=cancelled, in_flight=len(self._in_flight))

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight executions. Returns False on timeout."""
        pending = {t for t in self._in_flight if not t.done()}
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule_config_tasks(self, config: NotificationConfig, from_time: datetime | None = None) -> list[ScheduledTask]:
        """Replace every armed run of `config` with freshly computed ones."""
        if config.id is None:
            raise ValueError("config must be saved before scheduling")

        self.unschedule_config_tasks(config.id)

        if not self._running or not config.enabled:
            return []

        now = from_time or self.clock.now()
        generation = self._generations.get(config.id, 0)
        runs = calculate_next_runs(config, now)[: self.max_tasks_per_config]
        armed = [self._arm(config, run, generation) for run in runs]

        logger.debug(
            "config_scheduled",
            config_id=config.id,
            runs=[r.isoformat() for r in runs],
        )
        return armed

    def unschedule_config_tasks(self, config_id: int) -> int:
        """Cancel and forget every armed run of a config."""
        self._bump_generation(config_id)

        removed = 0
        for task_id, task in list(self._tasks.items()):
            if task.config_id != config_id:
                continue
            del self._tasks[task_id]
            timer = self._timers.pop(task_id, None)
            if timer is not None and task_id not in self._executing:
                timer.cancel()
            removed += 1

        if removed:
            logger.debug("config_unscheduled", config_id=config_id, removed=removed)
        return removed

    def _bump_generation(self, config_id: int) -> None:
        self._generations[config_id] = self._generations.get(config_id, 0) + 1

    def _arm(self, config: NotificationConfig, run: datetime, generation: int) -> ScheduledTask:
        task_id = ScheduledTask.make_id(config.id, run)
        existing = self._tasks.get(task_id)
        if existing is not None:
            return existing

        task = ScheduledTask(
            id=task_id,
            config_id=config.id,
            next_run=run,
            config=config,
            generation=generation,
        )
        self._tasks[task_id] = task
        self._timers[task_id] = asyncio.create_task(self._run_timer(task), name=f"notification-{task_id}")
        return task

    async def _run_timer(self, task: ScheduledTask) -> None:
        # Single wait path: sleep in chunks no longer than the timer ceiling
        # until the run time is reached
        while True:
            remaining = (task.next_run - self.clock.now()).total_seconds()
            if remaining <= 0:
                break
            await self.clock.sleep(min(remaining, self.max_timer_delay))

        if self._tasks.get(task.id) is not task:
            return
        await self._execute_task(task)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _execute_task(self, task: ScheduledTask) -> None:
        if task.id in self._executing:
            return

        current = asyncio.current_task()
        self._executing.add(task.id)
        if current is not None:
            self._in_flight.add(current)
        self.executed_count += 1

        try:
            try:
                await self._process(task)
            except Exception as e:
                self._record_error(task, e)

            try:
                await self._reschedule_after(task)
            except Exception as e:
                self._record_error(task, e)
        finally:
            if self._tasks.get(task.id) is task:
                del self._tasks[task.id]
            if self._timers.get(task.id) is current:
                del self._timers[task.id]
            self._executing.discard(task.id)
            if current is not None:
                self._in_flight.discard(current)

    async def _process(self, task: ScheduledTask) -> str:
        """Policy check, evaluate and send. Returns the outcome."""
        config = task.config
        now = self.clock.now()
        task.last_run = now
        log = logger.bind(task_id=task.id, config_id=config.id, type=config.type.value)

        if not await self.store.is_notification_time_allowed(config, now):
            self.skipped_count += 1
            log.info("notification_skipped", reason="outside allowed time")
            return "skipped"

        if await self.store.has_reached_daily_limit(config.type, now):
            self.skipped_count += 1
            log.info("notification_skipped", reason="daily limit reached")
            return "skipped"

        evaluator = self.evaluators.get(config.type)
        if evaluator is None:
            self.skipped_count += 1
            log.warning("notification_skipped", reason="no evaluator for type")
            return "skipped"

        result = await evaluator.evaluate(EvaluationContext(config=config, now=now, store=self.store))
        if not result.should_notify or result.payload is None:
            self.skipped_count += 1
            log.info("notification_skipped", reason=result.reason, **result.details)
            return "skipped"

        task.payload = result.payload
        if not await self.dispatcher.send(result.payload):
            log.warning("notification_send_failed", title=result.payload.title)
            return "failed"

        self.sent_count += 1

        # Sent: record even if the config changed meanwhile, unless it was
        # deleted (its history went with it)
        if await self.store.get_config(config.id) is None:
            log.info("history_skipped", reason="config deleted", title=result.payload.title)
            return "sent"

        await self.store.add_history(
            NotificationHistory(
                config_id=config.id,
                type=config.type,
                title=result.payload.title,
                message=result.payload.message,
                sent_at=self.clock.now(),
                data=result.payload.data,
                subject_keys=result.payload.subject_keys,
            )
        )
        log.info("notification_sent", title=result.payload.title)
        return "sent"

    async def _reschedule_after(self, task: ScheduledTask) -> ScheduledTask | None:
        if not self._running:
            return None

        config = await self.store.get_config(task.config_id)

        # Re-validate after the await
        if not self._running or config is None or not config.enabled:
            logger.info("reschedule_skipped", config_id=task.config_id, reason="config gone, disabled or stopped")
            return None
        if self._generations.get(config.id, 0) != task.generation:
            return None

        armed = [t for t in self._tasks.values() if t.config_id == config.id and t is not task]
        if len(armed) >= self.max_tasks_per_config:
            return None
        armed_runs = {t.next_run for t in armed}

        base = task.next_run
        now = self.clock.now()
        if config.schedule.frequency == NotificationFrequency.IMMEDIATE:
            candidates = [base + self.immediate_recheck]
        else:
            candidates = calculate_next_runs(config, base)
        # Long outage: restart from now instead of replaying every missed run
        if candidates and all(run <= now for run in candidates):
            if config.schedule.frequency == NotificationFrequency.IMMEDIATE:
                candidates = [now + self.immediate_recheck]
            else:
                candidates = calculate_next_runs(config, now)

        for run in candidates:
            if run > base and run not in armed_runs:
                return self._arm(config, run, task.generation)
        return None

    def _record_error(self, task: ScheduledTask, error: Exception) -> None:
        logger.exception("task_failed", task_id=task.id, config_id=task.config_id)
        self.last_error = {
            "task_id": task.id,
            "config_id": task.config_id,
            "error": f"{type(error).__name__}: {error}",
            "at": self.clock.now().isoformat(),
        }

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while self._running:
            await self.clock.sleep(self.check_interval_seconds)
            if not self._running:
                break
            self.run_due_tasks()

    def run_due_tasks(self) -> int:
        """Fire every armed task whose run time has passed. Returns the count."""
        now = self.clock.now()
        fired = 0
        for task in list(self._tasks.values()):
            if task.next_run > now or task.id in self._executing:
                continue
            timer = self._timers.get(task.id)
            if timer is not None and not timer.done():
                timer.cancel()
            self._timers[task.id] = asyncio.create_task(self._execute_task(task), name=f"notification-{task.id}")
            fired += 1

        if fired:
            logger.info("sweep_fired_overdue", count=fired)
        return fired

    # -------------------------------------------------------------------------
    # Manual trigger and introspection
    # -------------------------------------------------------------------------

    async def run_now(self, config_id: int) -> dict[str, Any]:
        """Evaluate and send one config immediately, without touching armed runs."""
        config = await self.store.get_config(config_id)
        if config is None:
            return {"success": False, "error": f"Config {config_id} not found"}

        now = self.clock.now()
        task = ScheduledTask(id=f"manual-{ScheduledTask.make_id(config_id, now)}", config_id=config_id, next_run=now, config=config)
        try:
            outcome = await self._process(task)
        except Exception as e:
            self._record_error(task, e)
            return {"success": False, "error": str(e)}

        return {
            "success": True,
            "outcome": outcome,
            "payload": task.payload.to_dict() if task.payload else None,
        }

    def get_current_tasks(self) -> list[ScheduledTask]:
        return sorted(self._tasks.values(), key=lambda t: (t.next_run, t.id))

    def get_status(self) -> dict[str, Any]:
        tasks = self.get_current_tasks()
        return {
            "running": self._running,
            "task_count": len(tasks),
            "next_task": tasks[0].to_dict() if tasks else None,
            "executing": len(self._executing),
            "last_error": self.last_error,
            "executed_count": self.executed_count,
            "sent_count": self.sent_count,
            "skipped_count": self.skipped_count,
        }
