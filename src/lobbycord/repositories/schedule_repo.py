"""
Persistent storage for cron schedules.

A schedule is unique per (guild, task type); a NULL guild is its own scope
and means "every guild". ``guild_id IS ?`` is used throughout so the NULL
scope matches itself.
"""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from lobbycord.datatypes.discord_datatypes import GuildID
from lobbycord.datatypes.schedule_datatypes import Schedule, TaskType
from lobbycord.util.logger import get_logger

logger = get_logger("schedule_repo")


def _guild_param(guild_id) -> Optional[int]:
    return int(guild_id) if guild_id is not None else None


class ScheduleRepo:
    """CRUD for the ``schedules`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert(
        conn: aiosqlite.Connection,
        guild_id,
        task_type: TaskType,
        cron_expression: str,
        enabled: bool = True,
    ) -> int:
        """Create or replace the schedule for (guild, task type) and return its id."""
        cursor = await conn.execute(
            "SELECT id FROM schedules WHERE guild_id IS ? AND task_type = ?",
            (_guild_param(guild_id), task_type.value),
        )
        row = await cursor.fetchone()
        if row is not None:
            await conn.execute(
                "UPDATE schedules SET cron_expression = ?, enabled = ? WHERE id = ?",
                (cron_expression, int(enabled), row["id"]),
            )
            return row["id"]

        cursor = await conn.execute(
            "INSERT INTO schedules (guild_id, task_type, cron_expression, enabled) VALUES (?, ?, ?, ?)",
            (_guild_param(guild_id), task_type.value, cron_expression, int(enabled)),
        )
        return cursor.lastrowid

    @staticmethod
    async def set_enabled(conn: aiosqlite.Connection, guild_id, task_type: TaskType, enabled: bool) -> bool:
        """Flip the enabled flag; False when no such schedule exists."""
        cursor = await conn.execute(
            "UPDATE schedules SET enabled = ? WHERE guild_id IS ? AND task_type = ?",
            (int(enabled), _guild_param(guild_id), task_type.value),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_all(conn: aiosqlite.Connection) -> List[Schedule]:
        """Every schedule, enabled or not, ordered by id.

        Rows with an unknown task type are skipped with a warning.
        """
        cursor = await conn.execute(
            "SELECT id, guild_id, task_type, cron_expression, enabled FROM schedules ORDER BY id"
        )
        rows = await cursor.fetchall()
        schedules: List[Schedule] = []
        for row in rows:
            schedule = ScheduleRepo._to_schedule(row)
            if schedule is not None:
                schedules.append(schedule)
        return schedules

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id, task_type: TaskType) -> Optional[Schedule]:
        cursor = await conn.execute(
            "SELECT id, guild_id, task_type, cron_expression, enabled FROM schedules "
            "WHERE guild_id IS ? AND task_type = ?",
            (_guild_param(guild_id), task_type.value),
        )
        row = await cursor.fetchone()
        return ScheduleRepo._to_schedule(row) if row else None

    @staticmethod
    def _to_schedule(row: aiosqlite.Row) -> Optional[Schedule]:
        try:
            task_type = TaskType.from_db(row["task_type"])
        except ValueError:
            logger.warning(
                "[SCHEDULE REPO] Skipping schedule %s with unknown task type %r",
                row["id"], row["task_type"],
            )
            return None
        guild_id = row["guild_id"]
        return Schedule(
            id=row["id"],
            guild_id=GuildID(guild_id) if guild_id is not None else None,
            task_type=task_type,
            cron_expression=row["cron_expression"],
            enabled=bool(row["enabled"]),
        )
