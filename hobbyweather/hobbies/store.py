"""
Tool: Hobby Store
Purpose: Persist hobbies and serve the active set to evaluators

Usage:
    store = HobbyStore(db_path)
    hobby = await store.add_hobby(Hobby(name="Hiking"))
    active = await store.get_active_hobbies()

CLI:
    hobbyweather --action add-hobby --name Hiking --outdoor
    hobbyweather --action hobbies
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

from hobbyweather.hobbies import get_connection
from hobbyweather.hobbies.models import Hobby
from hobbyweather.logging_config import get_logger

logger = get_logger(__name__)


class HobbySource(Protocol):
    """What evaluators need from a hobby collection."""

    async def get_active_hobbies(self) -> list[Hobby]: ...


class HobbyStore:
    """sqlite-backed hobby collection."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    async def add_hobby(self, hobby: Hobby) -> Hobby:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                INSERT INTO hobbies (name, description, is_active, is_outdoor, preferred_weather,
                                     preferred_time_of_day, min_temperature, max_temperature, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    hobby.name,
                    hobby.description,
                    hobby.is_active,
                    hobby.is_outdoor,
                    json.dumps([w.to_dict() for w in hobby.preferred_weather]),
                    json.dumps([t.value for t in hobby.preferred_time_of_day]),
                    hobby.min_temperature,
                    hobby.max_temperature,
                    hobby.created_at.isoformat(),
                ),
            )
            conn.commit()
            hobby.id = cursor.lastrowid
        finally:
            conn.close()

        logger.info("hobby_added", hobby_id=hobby.id, name=hobby.name)
        return hobby

    async def get_hobby(self, hobby_id: int) -> Hobby | None:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM hobbies WHERE id = ?", (hobby_id,)).fetchone()
        finally:
            conn.close()
        return Hobby.from_row(row) if row else None

    async def list_hobbies(self) -> list[Hobby]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM hobbies ORDER BY id").fetchall()
        finally:
            conn.close()
        return [Hobby.from_row(r) for r in rows]

    async def get_active_hobbies(self) -> list[Hobby]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM hobbies WHERE is_active = 1 ORDER BY id").fetchall()
        finally:
            conn.close()
        return [Hobby.from_row(r) for r in rows]

    async def set_active(self, hobby_id: int, active: bool) -> bool:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE hobbies SET is_active = ?, updated_at = ? WHERE id = ?",
                (active, datetime.now().isoformat(), hobby_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    async def delete_hobby(self, hobby_id: int) -> bool:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("DELETE FROM hobbies WHERE id = ?", (hobby_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        finally:
            conn.close()

        if deleted:
            logger.info("hobby_deleted", hobby_id=hobby_id)
        return deleted
