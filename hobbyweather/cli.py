"""
Tool: Hobbyweather CLI
Purpose: Operate the notification engine from the command line

Usage:
    hobbyweather --action run
    hobbyweather --action init
    hobbyweather --action configs
    hobbyweather --action enable --id 2
    hobbyweather --action disable --id 2
    hobbyweather --action delete --id 2
    hobbyweather --action preview
    hobbyweather --action evaluate --type high-score --force
    hobbyweather --action run-now --id 1
    hobbyweather --action history --type weather-alert --limit 20
    hobbyweather --action stats --days 7
    hobbyweather --action settings --quiet-start 22:00 --quiet-end 06:00 --max-daily 5
    hobbyweather --action add-hobby --name Cycling --outdoor --weather clear:9 --min-temp 12 --max-temp 26
    hobbyweather --action hobbies
    hobbyweather --action validate-config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from hobbyweather.config_models import load_and_validate, validate_all_configs
from hobbyweather.hobbies.models import Hobby, PreferredWeather, TimeOfDay
from hobbyweather.hobbies.store import HobbyStore
from hobbyweather.logging_config import setup_logging
from hobbyweather.notifications.evaluators.base import EvaluationContext
from hobbyweather.notifications.evaluators.high_score import HighScoreEvaluator
from hobbyweather.notifications.lifecycle import BackgroundTaskManager, build_manager
from hobbyweather.notifications.models import NotificationType, PermissionState, TimeRange
from hobbyweather.notifications.scheduler import calculate_next_runs
from hobbyweather.notifications.store import default_configs

ACTIONS = [
    "run",
    "init",
    "configs",
    "enable",
    "disable",
    "delete",
    "preview",
    "evaluate",
    "run-now",
    "history",
    "stats",
    "settings",
    "add-hobby",
    "hobbies",
    "validate-config",
]


def _parse_weather(values: list[str] | None) -> list[PreferredWeather]:
    preferred = []
    for value in values or []:
        condition, _, weight = value.partition(":")
        preferred.append(PreferredWeather(condition=condition, weight=int(weight or 5)))
    return preferred


async def _toggle(manager: BackgroundTaskManager, config_id: int, enabled: bool) -> dict[str, Any]:
    config = await manager.store.toggle_config(config_id, enabled)
    if config is None:
        return {"success": False, "error": f"Config {config_id} not found"}
    return {"success": True, "message": f"Config {config_id} {'enabled' if enabled else 'disabled'}", "config": config.to_dict()}


async def run_action(args: argparse.Namespace, manager: BackgroundTaskManager) -> dict[str, Any]:
    store = manager.store
    action = args.action

    if action == "run":
        await manager.run_forever()
        return {"success": True, "message": "Stopped"}

    if action == "init":
        created = await store.create_default_configs()
        settings = await store.get_settings()
        return {
            "success": True,
            "message": f"Created {len(created)} default config(s)",
            "configs": [c.to_dict() for c in created],
            "settings": settings.to_dict(),
        }

    if action == "configs":
        configs = await store.get_all_configs()
        return {"success": True, "message": f"{len(configs)} config(s)", "configs": [c.to_dict() for c in configs]}

    if action in ("enable", "disable"):
        if args.id is None:
            return {"success": False, "error": "--id required"}
        return await _toggle(manager, args.id, action == "enable")

    if action == "delete":
        if args.id is None:
            return {"success": False, "error": "--id required"}
        if not await store.delete_config(args.id):
            return {"success": False, "error": f"Config {args.id} not found"}
        return {"success": True, "message": f"Config {args.id} deleted"}

    if action == "preview":
        now = store.clock.now()
        limit = manager.scheduler.max_tasks_per_config
        preview = []
        for config in await store.get_enabled_configs():
            preview.append(
                {
                    "config_id": config.id,
                    "type": config.type.value,
                    "frequency": config.schedule.frequency.value,
                    "next_runs": [r.isoformat() for r in calculate_next_runs(config, now)[:limit]],
                    "allowed_now": await store.is_notification_time_allowed(config, now),
                }
            )
        return {"success": True, "message": f"{len(preview)} enabled config(s)", "preview": preview}

    if action == "evaluate":
        notification_type = NotificationType(args.type or NotificationType.HIGH_SCORE)
        evaluator = manager.scheduler.evaluators[notification_type]
        if args.force and isinstance(evaluator, HighScoreEvaluator):
            result = await evaluator.force_evaluate(store)
        else:
            configs = await store.get_configs_by_type(notification_type)
            config = configs[0] if configs else next(c for c in default_configs() if c.type == notification_type)
            result = await evaluator.evaluate(EvaluationContext(config=config, now=store.clock.now(), store=store))
        return {
            "success": True,
            "message": "Would notify" if result.should_notify else f"Would skip: {result.reason}",
            "result": result.to_dict(),
        }

    if action == "run-now":
        if args.id is None:
            return {"success": False, "error": "--id required"}
        if manager.dispatcher.get_permission_state() == PermissionState.DEFAULT:
            await manager.dispatcher.request_permission()
        result = await manager.scheduler.run_now(args.id)
        if result.get("success"):
            result["message"] = f"Outcome: {result['outcome']}"
        return result

    if action == "history":
        history = await store.get_history(
            NotificationType(args.type) if args.type else None,
            limit=args.limit,
        )
        return {"success": True, "message": f"{len(history)} notification(s)", "history": [h.to_dict() for h in history]}

    if action == "stats":
        stats = await store.get_stats(args.days)
        stats["lifecycle"] = await manager.get_stats()
        for notification_type, evaluator in manager.scheduler.evaluators.items():
            get_statistics = getattr(evaluator, "get_statistics", None)
            if get_statistics is not None:
                stats[notification_type.value] = await get_statistics(store)
        return {"success": True, "message": f"Stats for the last {args.days} day(s)", "stats": stats}

    if action == "settings":
        changes: dict[str, Any] = {}
        if args.quiet_start or args.quiet_end:
            current = (await store.get_settings()).quiet_hours
            changes["quiet_hours"] = TimeRange(
                args.quiet_start or (current.start if current else "22:00"),
                args.quiet_end or (current.end if current else "06:00"),
            )
        if args.no_quiet_hours:
            changes["quiet_hours"] = None
        if args.max_daily is not None:
            changes["max_daily_notifications"] = args.max_daily
        if args.global_enabled is not None:
            changes["global_enabled"] = args.global_enabled == "on"
        settings = await store.update_settings(**changes) if changes else await store.get_settings()
        return {"success": True, "message": "Settings updated" if changes else "Current settings", "settings": settings.to_dict()}

    if action == "add-hobby":
        if not args.name:
            return {"success": False, "error": "--name required"}
        hobby = Hobby(
            name=args.name,
            description=args.description,
            is_outdoor=args.outdoor,
            preferred_weather=_parse_weather(args.weather),
            preferred_time_of_day=[TimeOfDay(t) for t in args.time_of_day or []],
            min_temperature=args.min_temp,
            max_temperature=args.max_temp,
        )
        hobby = await HobbyStore(store.db_path).add_hobby(hobby)
        return {"success": True, "message": f"Added hobby {hobby.id}", "hobby": hobby.to_dict()}

    if action == "hobbies":
        hobbies = await HobbyStore(store.db_path).list_hobbies()
        return {"success": True, "message": f"{len(hobbies)} hobby(ies)", "hobbies": [h.to_dict() for h in hobbies]}

    if action == "validate-config":
        results = validate_all_configs()
        ok = all(results.values())
        return {"success": ok, "message": "All configs valid", "results": results} if ok else {
            "success": False,
            "error": "Config validation failed",
            "results": results,
        }

    return {"success": False, "error": f"Unknown action: {action}"}


async def _run(args: argparse.Namespace, manager: BackgroundTaskManager) -> dict[str, Any]:
    try:
        return await run_action(args, manager)
    finally:
        await manager.dispatcher.close()


def main():
    parser = argparse.ArgumentParser(description="Hobbyweather notification engine")
    parser.add_argument("--action", required=True, choices=ACTIONS, help="Action to perform")
    parser.add_argument("--id", type=int, help="Notification config ID")
    parser.add_argument("--type", choices=[t.value for t in NotificationType], help="Notification type")
    parser.add_argument("--force", action="store_true", help="Relaxed thresholds for evaluate")
    parser.add_argument("--limit", type=int, default=20, help="Max history rows")
    parser.add_argument("--days", type=int, default=7, help="Stats window in days")
    parser.add_argument("--quiet-start", help="Quiet hours start (HH:MM)")
    parser.add_argument("--quiet-end", help="Quiet hours end (HH:MM)")
    parser.add_argument("--no-quiet-hours", action="store_true", help="Disable quiet hours")
    parser.add_argument("--max-daily", type=int, help="Daily notification cap")
    parser.add_argument("--global-enabled", choices=["on", "off"], help="Master switch")
    parser.add_argument("--name", help="Hobby name")
    parser.add_argument("--description", help="Hobby description")
    parser.add_argument("--outdoor", action="store_true", help="Hobby is outdoors")
    parser.add_argument("--weather", nargs="*", help="Preferred weather as type:weight, e.g. clear:9")
    parser.add_argument("--time-of-day", nargs="*", choices=[t.value for t in TimeOfDay], help="Preferred times")
    parser.add_argument("--min-temp", type=float, help="Minimum comfortable temperature")
    parser.add_argument("--max-temp", type=float, help="Maximum comfortable temperature")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()
    setup_logging(level="DEBUG" if args.verbose else None)

    manager = build_manager(load_and_validate("notifications"))
    try:
        result = asyncio.run(_run(args, manager))
    except ValueError as e:
        result = {"success": False, "error": str(e)}

    if result.get("success"):
        print(f"OK {result.get('message', 'Success')}")
    else:
        print(f"ERROR {result.get('error')}")
        print(json.dumps(result, indent=2, default=str))
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
