"""
Tool: Notification Configuration Store
Purpose: CRUD over notification configs, history and settings, plus the
sending policy the scheduler consults before every notification

Policy:
    - Global switch and quiet hours (quiet hours may wrap past midnight)
    - Per-config enabled flag, allowed weekdays and time-of-day windows
    - Daily cap per calendar day, optionally per notification type

Usage:
    store = NotificationStore(db_path)
    await store.create_default_configs()
    allowed = await store.is_notification_time_allowed(config)
    capped = await store.has_reached_daily_limit(NotificationType.HIGH_SCORE)
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable

from hobbyweather.logging_config import get_logger
from hobbyweather.notifications import get_connection
from hobbyweather.notifications.clock import Clock, SystemClock
from hobbyweather.notifications.models import (
    ALL_DAYS,
    WEEKDAYS,
    NotificationConditions,
    NotificationConfig,
    NotificationFrequency,
    NotificationHistory,
    NotificationPriority,
    NotificationSchedule,
    NotificationSettings,
    NotificationType,
    TimeRange,
    day_of_week,
)

logger = get_logger(__name__)

DEFAULT_MAX_DAILY = 10


def _ts(moment: datetime) -> str:
    # Fixed width so string comparison in sqlite matches time order
    return moment.isoformat(timespec="microseconds")


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def default_configs() -> list[NotificationConfig]:
    """One built-in config per notification type."""
    return [
        NotificationConfig(
            type=NotificationType.HIGH_SCORE,
            title="High score alert",
            priority=NotificationPriority.MEDIUM,
            schedule=NotificationSchedule(
                frequency=NotificationFrequency.CUSTOM,
                time_of_day=[TimeRange("09:00", "18:00")],
                days_of_week=list(WEEKDAYS),
                custom_interval=180,
            ),
            conditions=NotificationConditions(min_score=80, score_threshold=85),
        ),
        NotificationConfig(
            type=NotificationType.WEATHER_ALERT,
            title="Sudden weather alert",
            priority=NotificationPriority.HIGH,
            schedule=NotificationSchedule(
                frequency=NotificationFrequency.IMMEDIATE,
                time_of_day=[TimeRange("06:00", "22:00")],
                days_of_week=list(ALL_DAYS),
            ),
            conditions=NotificationConditions(
                precipitation_threshold=70,
                temperature_change_threshold=5,
                wind_speed_threshold=10,
            ),
        ),
        NotificationConfig(
            type=NotificationType.REGULAR_REPORT,
            title="Today's hobby report",
            priority=NotificationPriority.LOW,
            schedule=NotificationSchedule(
                frequency=NotificationFrequency.DAILY,
                time_of_day=[TimeRange("08:00", "08:30")],
                days_of_week=list(ALL_DAYS),
            ),
            conditions=NotificationConditions(include_past_days=1, include_upcoming_days=3),
        ),
    ]


class NotificationStore:
    """Persistence and sending policy for the notification engine."""

    def __init__(
        self,
        db_path: Path | None = None,
        clock: Clock | None = None,
        default_settings: NotificationSettings | None = None,
    ):
        self.db_path = db_path
        self.clock = clock or SystemClock()
        self.default_settings = default_settings or NotificationSettings(
            quiet_hours=TimeRange("22:00", "06:00"),
        )

    def _connect(self):
        return get_connection(self.db_path)

    # -------------------------------------------------------------------------
    # Configs
    # -------------------------------------------------------------------------

    async def create_config(self, config: NotificationConfig) -> NotificationConfig:
        created = replace(config, created_at=self.clock.now(), updated_at=None)
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                INSERT INTO notification_configs (type, title, enabled, priority, schedule, conditions, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    created.type.value,
                    created.title,
                    created.enabled,
                    created.priority.value,
                    json.dumps(created.schedule.to_dict()),
                    json.dumps(created.conditions.to_dict()),
                    _ts(created.created_at),
                ),
            )
            conn.commit()
            created.id = cursor.lastrowid
        finally:
            conn.close()

        logger.info("config_created", config_id=created.id, type=created.type.value)
        return created

    async def get_config(self, config_id: int) -> NotificationConfig | None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM notification_configs WHERE id = ?", (config_id,)).fetchone()
        finally:
            conn.close()
        return NotificationConfig.from_row(row) if row else None

    async def get_all_configs(self) -> list[NotificationConfig]:
        return self._query_configs("SELECT * FROM notification_configs ORDER BY id", ())

    async def get_configs_by_type(self, notification_type: NotificationType) -> list[NotificationConfig]:
        return self._query_configs(
            "SELECT * FROM notification_configs WHERE type = ? ORDER BY id",
            (NotificationType(notification_type).value,),
        )

    async def get_enabled_configs(self) -> list[NotificationConfig]:
        return self._query_configs("SELECT * FROM notification_configs WHERE enabled = 1 ORDER BY id", ())

    def _query_configs(self, sql: str, params: tuple) -> list[NotificationConfig]:
        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [NotificationConfig.from_row(r) for r in rows]

    async def update_config(self, config: NotificationConfig) -> NotificationConfig | None:
        """Persist every editable field of `config`. Returns None if it no longer exists."""
        if config.id is None:
            raise ValueError("config has no id")

        updated = replace(config, updated_at=self.clock.now())
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                UPDATE notification_configs
                SET type = ?, title = ?, enabled = ?, priority = ?, schedule = ?, conditions = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.type.value,
                    updated.title,
                    updated.enabled,
                    updated.priority.value,
                    json.dumps(updated.schedule.to_dict()),
                    json.dumps(updated.conditions.to_dict()),
                    _ts(updated.updated_at),
                    updated.id,
                ),
            )
            conn.commit()
            found = cursor.rowcount > 0
        finally:
            conn.close()

        if not found:
            return None
        logger.info("config_updated", config_id=updated.id, enabled=updated.enabled)
        return updated

    async def toggle_config(self, config_id: int, enabled: bool | None = None) -> NotificationConfig | None:
        """Flip (or set) the enabled flag."""
        config = await self.get_config(config_id)
        if config is None:
            return None
        config.enabled = (not config.enabled) if enabled is None else enabled
        return await self.update_config(config)

    async def delete_config(self, config_id: int) -> bool:
        """Delete a config and every history row that references it."""
        conn = self._connect()
        try:
            conn.execute(
                """
                DELETE FROM notification_subjects
                WHERE history_id IN (SELECT id FROM notification_history WHERE config_id = ?)
                """,
                (config_id,),
            )
            history = conn.execute("DELETE FROM notification_history WHERE config_id = ?", (config_id,))
            cursor = conn.execute("DELETE FROM notification_configs WHERE id = ?", (config_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
            history_deleted = history.rowcount
        finally:
            conn.close()

        if deleted:
            logger.info("config_deleted", config_id=config_id, history_deleted=history_deleted)
        return deleted

    async def create_default_configs(self) -> list[NotificationConfig]:
        """Seed one config per type on first run. No-op when any config exists."""
        existing = await self.get_all_configs()
        if existing:
            return []

        created = [await self.create_config(config) for config in default_configs()]
        await self.get_settings()
        logger.info("default_configs_created", count=len(created))
        return created

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def add_history(self, history: NotificationHistory) -> NotificationHistory:
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                INSERT INTO notification_history (config_id, type, title, message, sent_at, clicked, dismissed, data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    history.config_id,
                    history.type.value,
                    history.title,
                    history.message,
                    _ts(history.sent_at),
                    history.clicked,
                    history.dismissed,
                    json.dumps(history.data, default=str),
                ),
            )
            history_id = cursor.lastrowid
            conn.executemany(
                "INSERT OR IGNORE INTO notification_subjects (history_id, subject_key) VALUES (?, ?)",
                [(history_id, key) for key in history.subject_keys],
            )
            conn.commit()
        finally:
            conn.close()

        return replace(history, id=history_id)

    async def get_history(
        self,
        notification_type: NotificationType | None = None,
        since: datetime | None = None,
        config_id: int | None = None,
        limit: int | None = None,
    ) -> list[NotificationHistory]:
        """History rows newest first, optionally filtered."""
        sql = "SELECT * FROM notification_history WHERE 1=1"
        params: list[Any] = []
        if notification_type is not None:
            sql += " AND type = ?"
            params.append(NotificationType(notification_type).value)
        if since is not None:
            sql += " AND sent_at >= ?"
            params.append(_ts(since))
        if config_id is not None:
            sql += " AND config_id = ?"
            params.append(config_id)
        sql += " ORDER BY sent_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
            keys: dict[int, list[str]] = {}
            if rows:
                ids = [r["id"] for r in rows]
                placeholders = ",".join("?" for _ in ids)
                for sub in conn.execute(
                    f"SELECT history_id, subject_key FROM notification_subjects WHERE history_id IN ({placeholders})",
                    ids,
                ):
                    keys.setdefault(sub["history_id"], []).append(sub["subject_key"])
        finally:
            conn.close()

        return [NotificationHistory.from_row(r, sorted(keys.get(r["id"], []))) for r in rows]

    async def count_history(
        self,
        notification_type: NotificationType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        sql = "SELECT COUNT(*) FROM notification_history WHERE 1=1"
        params: list[Any] = []
        if notification_type is not None:
            sql += " AND type = ?"
            params.append(NotificationType(notification_type).value)
        if since is not None:
            sql += " AND sent_at >= ?"
            params.append(_ts(since))
        if until is not None:
            sql += " AND sent_at < ?"
            params.append(_ts(until))

        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchone()[0]
        finally:
            conn.close()

    async def recent_subjects(
        self,
        notification_type: NotificationType,
        subject_keys: Iterable[str],
        since: datetime,
    ) -> set[str]:
        """Which of `subject_keys` were notified for this type since `since`."""
        keys = list(dict.fromkeys(subject_keys))
        if not keys:
            return set()

        placeholders = ",".join("?" for _ in keys)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"""
                SELECT DISTINCT s.subject_key
                FROM notification_subjects s
                JOIN notification_history h ON h.id = s.history_id
                WHERE h.type = ? AND h.sent_at >= ? AND s.subject_key IN ({placeholders})
                """,
                [NotificationType(notification_type).value, _ts(since), *keys],
            ).fetchall()
        finally:
            conn.close()
        return {r["subject_key"] for r in rows}

    async def mark_clicked(self, history_id: int) -> bool:
        return self._set_history_flag(history_id, "clicked")

    async def mark_dismissed(self, history_id: int) -> bool:
        return self._set_history_flag(history_id, "dismissed")

    def _set_history_flag(self, history_id: int, column: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(f"UPDATE notification_history SET {column} = 1 WHERE id = ?", (history_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    async def get_stats(self, days: int = 7) -> dict[str, Any]:
        """Totals, per-type counts and click/dismiss rates over the last `days`."""
        since = self.clock.now() - timedelta(days=days)
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT type, clicked, dismissed FROM notification_history WHERE sent_at >= ?",
                (_ts(since),),
            ).fetchall()
        finally:
            conn.close()

        total = len(rows)
        by_type: dict[str, int] = {}
        for row in rows:
            by_type[row["type"]] = by_type.get(row["type"], 0) + 1
        clicked = sum(1 for r in rows if r["clicked"])
        dismissed = sum(1 for r in rows if r["dismissed"])

        return {
            "days": days,
            "total_sent": total,
            "by_type": by_type,
            "click_rate": clicked / total if total else 0.0,
            "dismiss_rate": dismissed / total if total else 0.0,
        }

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self) -> NotificationSettings:
        """The singleton settings row, created with defaults on first access."""
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM notification_settings WHERE id = 1").fetchone()
            if row is None:
                settings = replace(self.default_settings, updated_at=self.clock.now())
                self._write_settings(conn, settings)
                conn.commit()
                logger.info("settings_initialized")
                return settings
        finally:
            conn.close()
        return NotificationSettings.from_row(row)

    async def update_settings(self, **changes: Any) -> NotificationSettings:
        """Update fields of the settings singleton in place."""
        current = await self.get_settings()
        unknown = set(changes) - {
            "global_enabled",
            "quiet_hours",
            "max_daily_notifications",
            "sound_enabled",
            "vibration_enabled",
        }
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")

        quiet = changes.get("quiet_hours", current.quiet_hours)
        if isinstance(quiet, dict):
            changes["quiet_hours"] = TimeRange.from_dict(quiet)

        updated = replace(current, **changes, updated_at=self.clock.now())
        conn = self._connect()
        try:
            self._write_settings(conn, updated)
            conn.commit()
        finally:
            conn.close()

        logger.info("settings_updated", fields=sorted(changes))
        return updated

    @staticmethod
    def _write_settings(conn, settings: NotificationSettings) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO notification_settings
                (id, global_enabled, quiet_hours, max_daily_notifications, sound_enabled, vibration_enabled, updated_at)
            VALUES (1, ?, ?, ?, ?, ?, ?)
            """,
            (
                settings.global_enabled,
                json.dumps(settings.quiet_hours.to_dict()) if settings.quiet_hours else None,
                settings.max_daily_notifications,
                settings.sound_enabled,
                settings.vibration_enabled,
                _ts(settings.updated_at),
            ),
        )

    # -------------------------------------------------------------------------
    # Policy
    # -------------------------------------------------------------------------

    async def is_notification_time_allowed(self, config: NotificationConfig, now: datetime | None = None) -> bool:
        """Whether `config` may send at `now` under global and per-config rules."""
        now = now or self.clock.now()
        settings = await self.get_settings()
        return check_time_allowed(settings, config, now)

    async def has_reached_daily_limit(
        self,
        notification_type: NotificationType | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Whether today's sends (of `notification_type`, or of all types) hit the cap."""
        now = now or self.clock.now()
        settings = await self.get_settings()
        limit = settings.max_daily_notifications
        if limit is None:
            limit = DEFAULT_MAX_DAILY

        today = start_of_day(now)
        count = await self.count_history(notification_type, since=today, until=today + timedelta(days=1))
        return count >= limit


def check_time_allowed(settings: NotificationSettings, config: NotificationConfig, now: datetime) -> bool:
    if not settings.global_enabled:
        return False

    if settings.quiet_hours and settings.quiet_hours.contains(now):
        return False

    if not config.enabled:
        return False

    if day_of_week(now) not in config.schedule.days_of_week:
        return False

    if config.schedule.time_of_day and not any(tr.contains(now) for tr in config.schedule.time_of_day):
        return False

    return True
