"""Persistent storage for per-guild settings (currently the guild's timezone)."""

from __future__ import annotations

from typing import Optional

import aiosqlite


class GuildSettingsRepo:
    """CRUD for the ``guild_settings`` table."""

    @staticmethod
    async def set_timezone(conn: aiosqlite.Connection, guild_id, timezone_name: str) -> None:
        await conn.execute(
            """
            INSERT INTO guild_settings (guild_id, timezone)
            VALUES (?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                timezone = excluded.timezone
            """,
            (int(guild_id), timezone_name),
        )

    @staticmethod
    async def get_timezone(conn: aiosqlite.Connection, guild_id) -> Optional[str]:
        cursor = await conn.execute(
            "SELECT timezone FROM guild_settings WHERE guild_id = ?",
            (int(guild_id),),
        )
        row = await cursor.fetchone()
        return row["timezone"] if row else None
