"""
Persistent storage for lobbies, temporary rooms and archive categories.

Ids are stored as INTEGER; every method accepts either the typed wrappers
from :mod:`lobbycord.datatypes.discord_datatypes` or raw ints.
"""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from lobbycord.datatypes.room_datatypes import LobbyRoom, TemporaryRoom


class LobbyRoomRepo:
    """CRUD for the ``lobby_rooms`` table."""

    @staticmethod
    async def insert(conn: aiosqlite.Connection, room_id, guild_id) -> None:
        await conn.execute(
            "INSERT INTO lobby_rooms (room_id, guild_id) VALUES (?, ?) "
            "ON CONFLICT(room_id) DO NOTHING",
            (int(room_id), int(guild_id)),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, room_id) -> bool:
        cursor = await conn.execute("DELETE FROM lobby_rooms WHERE room_id = ?", (int(room_id),))
        return cursor.rowcount > 0

    @staticmethod
    async def get_all(conn: aiosqlite.Connection) -> List[LobbyRoom]:
        cursor = await conn.execute("SELECT room_id, guild_id FROM lobby_rooms ORDER BY room_id")
        rows = await cursor.fetchall()
        return [LobbyRoom(room_id=ChannelID(row["room_id"]), guild_id=GuildID(row["guild_id"])) for row in rows]


class TemporaryRoomRepo:
    """CRUD for the ``temporary_rooms`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, room: TemporaryRoom) -> None:
        """Insert a room; an existing row with the same id is left untouched."""
        await conn.execute(
            """
            INSERT INTO temporary_rooms
                (room_id, guild_id, owner_id, lobby_room_id, is_persistent, is_archived)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(room_id) DO NOTHING
            """,
            (
                room.room_id.to_int(),
                room.guild_id.to_int(),
                room.owner_id.to_int(),
                room.lobby_room_id.to_int(),
                int(room.is_persistent),
                int(room.is_archived),
            ),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, room_id) -> bool:
        cursor = await conn.execute("DELETE FROM temporary_rooms WHERE room_id = ?", (int(room_id),))
        return cursor.rowcount > 0

    @staticmethod
    async def set_persistent(conn: aiosqlite.Connection, room_id, is_persistent: bool) -> None:
        await conn.execute(
            "UPDATE temporary_rooms SET is_persistent = ? WHERE room_id = ?",
            (int(is_persistent), int(room_id)),
        )

    @staticmethod
    async def set_archived(conn: aiosqlite.Connection, room_id, is_archived: bool) -> None:
        await conn.execute(
            "UPDATE temporary_rooms SET is_archived = ? WHERE room_id = ?",
            (int(is_archived), int(room_id)),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_all(conn: aiosqlite.Connection) -> List[TemporaryRoom]:
        cursor = await conn.execute(
            "SELECT room_id, guild_id, owner_id, lobby_room_id, is_persistent, is_archived "
            "FROM temporary_rooms ORDER BY room_id"
        )
        rows = await cursor.fetchall()
        return [
            TemporaryRoom(
                room_id=ChannelID(row["room_id"]),
                owner_id=UserID(row["owner_id"]),
                lobby_room_id=ChannelID(row["lobby_room_id"]),
                guild_id=GuildID(row["guild_id"]),
                is_persistent=bool(row["is_persistent"]),
                is_archived=bool(row["is_archived"]),
            )
            for row in rows
        ]

    @staticmethod
    async def get_archived_for_owner(
        conn: aiosqlite.Connection,
        guild_id,
        owner_id,
        lobby_room_id,
    ) -> Optional[ChannelID]:
        """Return the owner's archived room spawned from ``lobby_room_id``, if any."""
        cursor = await conn.execute(
            """
            SELECT room_id FROM temporary_rooms
            WHERE guild_id = ? AND owner_id = ? AND lobby_room_id = ? AND is_archived = 1
            ORDER BY room_id
            LIMIT 1
            """,
            (int(guild_id), int(owner_id), int(lobby_room_id)),
        )
        row = await cursor.fetchone()
        return ChannelID(row["room_id"]) if row else None


class ArchiveCategoryRepo:
    """CRUD for the ``archive_categories`` table."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, guild_id, category_id) -> None:
        await conn.execute(
            """
            INSERT INTO archive_categories (guild_id, category_id)
            VALUES (?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                category_id = excluded.category_id
            """,
            (int(guild_id), int(category_id)),
        )

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id) -> Optional[ChannelID]:
        cursor = await conn.execute(
            "SELECT category_id FROM archive_categories WHERE guild_id = ?",
            (int(guild_id),),
        )
        row = await cursor.fetchone()
        return ChannelID(row["category_id"]) if row else None
