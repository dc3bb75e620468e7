"""Tests for hobbyweather/config_models.py"""

import pytest
from pydantic import ValidationError

from hobbyweather.config_models import (
    NotificationsConfig,
    QuietHoursConfig,
    SchedulerSettingsConfig,
    load_and_validate,
    validate_all_configs,
)


class TestNotificationsConfig:
    def test_defaults(self):
        config = NotificationsConfig()

        assert config.scheduler.check_interval_seconds == 60
        assert config.scheduler.max_tasks_per_config == 3
        assert config.scheduler.immediate_recheck_minutes == 15
        assert config.settings.quiet_hours.start == "22:00"
        assert config.settings.quiet_hours.end == "06:00"
        assert config.settings.max_daily_notifications == 10
        assert config.weather.cache_ttl_minutes == 30
        assert config.dispatcher.kind == "log"

    def test_rejects_bad_quiet_hours(self):
        with pytest.raises(ValidationError):
            QuietHoursConfig(start="25:00")

    def test_rejects_task_cap_out_of_range(self):
        with pytest.raises(ValidationError):
            SchedulerSettingsConfig(max_tasks_per_config=0)

    def test_quiet_hours_can_be_disabled(self):
        config = NotificationsConfig.model_validate({"settings": {"quiet_hours": None}})

        assert config.settings.quiet_hours is None

    def test_extra_keys_allowed(self):
        config = NotificationsConfig.model_validate({"scheduler": {"future_option": True}})

        assert config.scheduler.future_option is True


class TestLoadAndValidate:
    def test_reads_yaml(self, tmp_path):
        (tmp_path / "notifications.yaml").write_text(
            "scheduler:\n  check_interval_seconds: 30\ndispatcher:\n  kind: webhook\n  webhook_url: https://x.test\n"
        )

        config = load_and_validate("notifications", args_dir=tmp_path)

        assert config.scheduler.check_interval_seconds == 30
        assert config.dispatcher.webhook_url == "https://x.test"
        assert config.settings.max_daily_notifications == 10

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_and_validate("notifications", args_dir=tmp_path)

        assert config == NotificationsConfig()

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "notifications.yaml").write_text("dispatcher:\n  kind: carrier-pigeon\n")

        config = load_and_validate("notifications", args_dir=tmp_path)

        assert config.dispatcher.kind == "log"
        assert validate_all_configs(tmp_path) == {"notifications": False}

    def test_unknown_config_name(self):
        with pytest.raises(ValueError, match="Unknown config"):
            load_and_validate("nope")

    def test_shipped_config_is_valid(self):
        assert validate_all_configs() == {"notifications": True}
