"""Persistent storage for user birthdays and per-guild birthday channels."""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from lobbycord.datatypes.birthday_datatypes import Birthday, BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID


class BirthdayRepo:
    """CRUD for the ``user_birthdays`` table."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, birthday: Birthday) -> None:
        await conn.execute(
            """
            INSERT INTO user_birthdays (user_id, birth_month, birth_day, birth_year)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                birth_month = excluded.birth_month,
                birth_day   = excluded.birth_day,
                birth_year  = excluded.birth_year
            """,
            (birthday.user_id.to_int(), birthday.month, birthday.day, birthday.year),
        )

    @staticmethod
    async def get(conn: aiosqlite.Connection, user_id) -> Optional[Birthday]:
        cursor = await conn.execute(
            "SELECT user_id, birth_month, birth_day, birth_year FROM user_birthdays WHERE user_id = ?",
            (int(user_id),),
        )
        row = await cursor.fetchone()
        return BirthdayRepo._to_birthday(row) if row else None

    @staticmethod
    async def get_on_date(conn: aiosqlite.Connection, month: int, day: int) -> List[Birthday]:
        """Every birthday falling on ``month``/``day``, ordered by user id."""
        cursor = await conn.execute(
            "SELECT user_id, birth_month, birth_day, birth_year FROM user_birthdays "
            "WHERE birth_month = ? AND birth_day = ? ORDER BY user_id",
            (month, day),
        )
        rows = await cursor.fetchall()
        return [BirthdayRepo._to_birthday(row) for row in rows]

    @staticmethod
    def _to_birthday(row: aiosqlite.Row) -> Birthday:
        return Birthday(
            user_id=UserID(row["user_id"]),
            month=row["birth_month"],
            day=row["birth_day"],
            year=row["birth_year"],
        )


class BirthdayChannelRepo:
    """CRUD for the ``birthday_channels`` table."""

    _COLUMNS = (
        "guild_id, channel_id, message_id, birthday_role_id, custom_message, "
        "custom_message_without_age, custom_header, custom_footer, "
        "collection_title, collection_description, collection_button_label"
    )

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, config: BirthdayChannelConfig) -> None:
        await conn.execute(
            f"""
            INSERT INTO birthday_channels ({BirthdayChannelRepo._COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                channel_id                 = excluded.channel_id,
                message_id                 = excluded.message_id,
                birthday_role_id           = excluded.birthday_role_id,
                custom_message             = excluded.custom_message,
                custom_message_without_age = excluded.custom_message_without_age,
                custom_header              = excluded.custom_header,
                custom_footer              = excluded.custom_footer,
                collection_title           = excluded.collection_title,
                collection_description     = excluded.collection_description,
                collection_button_label    = excluded.collection_button_label
            """,
            (
                config.guild_id.to_int(),
                config.channel_id.to_int(),
                config.message_id,
                config.role_id.to_int() if config.role_id is not None else None,
                config.custom_message,
                config.custom_message_without_age,
                config.custom_header,
                config.custom_footer,
                config.collection_title,
                config.collection_description,
                config.collection_button_label,
            ),
        )

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id) -> Optional[BirthdayChannelConfig]:
        cursor = await conn.execute(
            f"SELECT {BirthdayChannelRepo._COLUMNS} FROM birthday_channels WHERE guild_id = ?",
            (int(guild_id),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        role_id = row["birthday_role_id"]
        return BirthdayChannelConfig(
            guild_id=GuildID(row["guild_id"]),
            channel_id=ChannelID(row["channel_id"]),
            message_id=row["message_id"],
            role_id=RoleID(role_id) if role_id is not None else None,
            custom_message=row["custom_message"],
            custom_message_without_age=row["custom_message_without_age"],
            custom_header=row["custom_header"],
            custom_footer=row["custom_footer"],
            collection_title=row["collection_title"],
            collection_description=row["collection_description"],
            collection_button_label=row["collection_button_label"],
        )

    @staticmethod
    async def set_message_id(conn: aiosqlite.Connection, guild_id, message_id: Optional[int]) -> bool:
        """Record the birthday collection message posted for the guild."""
        cursor = await conn.execute(
            "UPDATE birthday_channels SET message_id = ? WHERE guild_id = ?",
            (message_id, int(guild_id)),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def get_role(conn: aiosqlite.Connection, guild_id) -> Optional[RoleID]:
        cursor = await conn.execute(
            "SELECT birthday_role_id FROM birthday_channels WHERE guild_id = ?",
            (int(guild_id),),
        )
        row = await cursor.fetchone()
        if row is None or row["birthday_role_id"] is None:
            return None
        return RoleID(row["birthday_role_id"])

    @staticmethod
    async def delete(conn: aiosqlite.Connection, guild_id) -> bool:
        cursor = await conn.execute("DELETE FROM birthday_channels WHERE guild_id = ?", (int(guild_id),))
        return cursor.rowcount > 0
