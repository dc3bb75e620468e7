"""
Tool: Background Task Manager
Purpose: Start and stop the notification scheduler with the app

Responsibilities:
- Seed default configs and settings on first run
- Start the scheduler on startup and when the app becomes visible again
- Keep armed runs aligned with config edits and deletions
- Report diagnostics and shut down gracefully

Usage:
    manager = build_manager()
    await manager.initialize()
    ...
    await manager.shutdown()

    # or as a foreground daemon until SIGINT/SIGTERM
    await manager.run_forever()
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime
from typing import Any

from hobbyweather.config_models import NotificationsConfig, load_and_validate
from hobbyweather.hobbies.store import HobbySource, HobbyStore
from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.clock import Clock, SystemClock
from hobbyweather.notifications.dispatcher import NotificationDispatcher, build_dispatcher
from hobbyweather.notifications.evaluators import build_evaluators
from hobbyweather.notifications.models import NotificationSettings, PermissionState, TimeRange
from hobbyweather.notifications.scheduler import NotificationScheduler
from hobbyweather.notifications.store import NotificationStore
from hobbyweather.weather.provider import ForecastProvider, OpenWeatherProvider

logger = get_logger(__name__)


class BackgroundTaskManager:
    """Owns the scheduler's lifetime."""

    def __init__(
        self,
        store: NotificationStore,
        scheduler: NotificationScheduler,
        dispatcher: NotificationDispatcher,
        shutdown_timeout: float = 10.0,
    ):
        self.store = store
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.shutdown_timeout = shutdown_timeout
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self.last_update: datetime | None = None

    def is_ready(self) -> bool:
        return self._initialized and self.scheduler.is_running

    async def initialize(self) -> dict[str, Any]:
        """Seed defaults and start the scheduler. Safe to call repeatedly."""
        async with self._init_lock:
            if self._initialized:
                await self.scheduler.start()
                return {"success": True, "message": "Already initialized"}

            created = await self.store.create_default_configs()
            await self.store.get_settings()

            if self.dispatcher.get_permission_state() == PermissionState.DEFAULT:
                await self.dispatcher.request_permission()

            await self.scheduler.start()
            self._initialized = True
            self.last_update = self.store.clock.now()

        logger.info(
            "background_tasks_initialized",
            defaults_created=len(created),
            permission=self.dispatcher.get_permission_state().value,
        )
        return {"success": True, "defaults_created": len(created)}

    async def handle_visibility_change(self, visible: bool) -> None:
        """Visible again: make sure the scheduler runs. Hidden: keep running."""
        if visible and self._initialized and not self.scheduler.is_running:
            logger.info("app_visible_restarting_scheduler")
            await self.scheduler.start()
            self.last_update = self.store.clock.now()

    async def handle_config_update(self, config_id: int) -> None:
        """Re-arm a config after it was created or edited."""
        config = await self.store.get_config(config_id)
        if config is None or not config.enabled:
            self.scheduler.unschedule_config_tasks(config_id)
        else:
            self.scheduler.schedule_config_tasks(config)
        self.last_update = self.store.clock.now()
        logger.info("config_update_applied", config_id=config_id, armed=config is not None and config.enabled)

    async def handle_config_deleted(self, config_id: int) -> None:
        self.scheduler.unschedule_config_tasks(config_id)
        self.last_update = self.store.clock.now()

    async def run_background_tasks(self) -> dict[str, Any]:
        """Diagnostic snapshot of the scheduler and armed runs."""
        now = self.store.clock.now()
        tasks = self.scheduler.get_current_tasks()
        overdue = [t for t in tasks if t.next_run <= now]
        configs = await self.store.get_all_configs()

        return {
            "success": True,
            "checked_at": now.isoformat(),
            "status": self.scheduler.get_status(),
            "enabled_configs": sum(1 for c in configs if c.enabled),
            "tasks": [t.to_dict() for t in tasks],
            "overdue": [t.id for t in overdue],
        }

    async def get_stats(self) -> dict[str, Any]:
        configs = await self.store.get_all_configs()
        status = self.scheduler.get_status()
        return {
            "scheduler_running": status["running"],
            "task_count": status["task_count"],
            "config_count": len(configs),
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }

    async def shutdown(self) -> None:
        """Stop the scheduler and wait for in-flight notifications."""
        self.scheduler.stop()
        drained = await self.scheduler.drain(self.shutdown_timeout)
        if not drained:
            logger.warning("shutdown_timeout", timeout=self.shutdown_timeout)
        await self.dispatcher.close()
        self._initialized = False
        logger.info("background_tasks_stopped")

    async def run_forever(self) -> None:
        """Run until SIGINT or SIGTERM."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            logger.info("signal_received", signum=signum)
            loop.call_soon_threadsafe(stop_event.set)

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        await self.initialize()
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()


def build_manager(
    config: NotificationsConfig | None = None,
    forecast_provider: ForecastProvider | None = None,
    hobby_source: HobbySource | None = None,
    dispatcher: NotificationDispatcher | None = None,
    clock: Clock | None = None,
) -> BackgroundTaskManager:
    """Assemble the default object graph from args/notifications.yaml."""
    config = config or load_and_validate("notifications")
    clock = clock or SystemClock()

    defaults = config.settings
    store = NotificationStore(
        db_path=config.database.path,
        clock=clock,
        default_settings=NotificationSettings(
            global_enabled=defaults.global_enabled,
            quiet_hours=TimeRange(defaults.quiet_hours.start, defaults.quiet_hours.end) if defaults.quiet_hours else None,
            max_daily_notifications=defaults.max_daily_notifications,
            sound_enabled=defaults.sound_enabled,
            vibration_enabled=defaults.vibration_enabled,
        ),
    )
    forecast_provider = forecast_provider or OpenWeatherProvider.from_config(config.weather)
    hobby_source = hobby_source or HobbyStore(config.database.path)
    dispatcher = dispatcher or build_dispatcher(config.dispatcher)

    scheduler = NotificationScheduler(
        store=store,
        dispatcher=dispatcher,
        evaluators=build_evaluators(forecast_provider, hobby_source),
        clock=clock,
        check_interval_seconds=config.scheduler.check_interval_seconds,
        max_tasks_per_config=config.scheduler.max_tasks_per_config,
        immediate_recheck_minutes=config.scheduler.immediate_recheck_minutes,
    )
    return BackgroundTaskManager(
        store=store,
        scheduler=scheduler,
        dispatcher=dispatcher,
        shutdown_timeout=config.scheduler.shutdown_timeout_seconds,
    )
