"""
Database coordinator for Lobbycord.

The :class:`Database` facade owns the :class:`ConnectionManager`, creates the
schema at startup, and exposes one method per store operation. Each method
delegates to a repository; writes run inside a serialised transaction.

Store errors (``aiosqlite.Error``) propagate to the caller, which decides
whether a failure is logged and skipped or aborts the operation.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from lobbycord.database.db_connection import ConnectionManager
from lobbycord.database.db_schema import SchemaManager
from lobbycord.datatypes.birthday_datatypes import Birthday, BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import ChannelID, RoleID
from lobbycord.datatypes.room_datatypes import LobbyRoom, TemporaryRoom
from lobbycord.datatypes.schedule_datatypes import Schedule, TaskType
from lobbycord.repositories.birthday_repo import BirthdayChannelRepo, BirthdayRepo
from lobbycord.repositories.guild_settings_repo import GuildSettingsRepo
from lobbycord.repositories.room_repo import ArchiveCategoryRepo, LobbyRoomRepo, TemporaryRoomRepo
from lobbycord.repositories.schedule_repo import ScheduleRepo
from lobbycord.scheduler.cron import DEFAULT_TIMEZONE
from lobbycord.util.logger import get_logger

logger = get_logger("database")

DEFAULT_DB_PATH = Path("./data/lobbycord.db")


def resolve_db_path() -> Path:
    """Database file from ``LOBBYCORD_DB_PATH``, defaulting to ``./data/lobbycord.db``."""
    return Path(os.getenv("LOBBYCORD_DB_PATH") or DEFAULT_DB_PATH).resolve()


class Database:
    """
    Central database coordinator.

    Lifecycle:
        1. ``await initialize()`` at startup
        2. call the store operations
        3. ``await shutdown()`` at exit
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or resolve_db_path()
        self._connection = ConnectionManager()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self._connection.open(self.db_path)
            async with self._connection.transaction() as conn:
                await SchemaManager.initialize_schema(conn)
        except Exception as exc:
            logger.error("[DATABASE] Database initialization failed: %s", exc)
            await self._connection.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._connection.is_open:
            return
        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    # ------------------------------------------------------------------
    # Lobbies
    # ------------------------------------------------------------------

    async def insert_lobby_room(self, room_id, guild_id) -> None:
        async with self._connection.transaction() as conn:
            await LobbyRoomRepo.insert(conn, room_id, guild_id)

    async def remove_lobby_room(self, room_id) -> bool:
        async with self._connection.transaction() as conn:
            return await LobbyRoomRepo.delete(conn, room_id)

    async def get_all_lobby_rooms(self) -> List[LobbyRoom]:
        async with self._connection.read() as conn:
            return await LobbyRoomRepo.get_all(conn)

    # ------------------------------------------------------------------
    # Temporary rooms
    # ------------------------------------------------------------------

    async def insert_temporary_room(self, room: TemporaryRoom) -> None:
        async with self._connection.transaction() as conn:
            await TemporaryRoomRepo.insert(conn, room)

    async def remove_temporary_room(self, room_id) -> bool:
        async with self._connection.transaction() as conn:
            return await TemporaryRoomRepo.delete(conn, room_id)

    async def set_room_persistent(self, room_id, is_persistent: bool) -> None:
        async with self._connection.transaction() as conn:
            await TemporaryRoomRepo.set_persistent(conn, room_id, is_persistent)

    async def set_room_archived(self, room_id, is_archived: bool) -> None:
        async with self._connection.transaction() as conn:
            await TemporaryRoomRepo.set_archived(conn, room_id, is_archived)

    async def get_all_temporary_rooms(self) -> List[TemporaryRoom]:
        async with self._connection.read() as conn:
            return await TemporaryRoomRepo.get_all(conn)

    async def get_archived_room_for_owner(self, guild_id, owner_id, lobby_room_id) -> Optional[ChannelID]:
        async with self._connection.read() as conn:
            return await TemporaryRoomRepo.get_archived_for_owner(conn, guild_id, owner_id, lobby_room_id)

    # ------------------------------------------------------------------
    # Archive categories
    # ------------------------------------------------------------------

    async def set_archive_category(self, guild_id, category_id) -> None:
        async with self._connection.transaction() as conn:
            await ArchiveCategoryRepo.upsert(conn, guild_id, category_id)

    async def get_archive_category(self, guild_id) -> Optional[ChannelID]:
        async with self._connection.read() as conn:
            return await ArchiveCategoryRepo.get(conn, guild_id)

    # ------------------------------------------------------------------
    # Birthdays
    # ------------------------------------------------------------------

    async def upsert_birthday(self, birthday: Birthday) -> None:
        async with self._connection.transaction() as conn:
            await BirthdayRepo.upsert(conn, birthday)

    async def get_birthday(self, user_id) -> Optional[Birthday]:
        async with self._connection.read() as conn:
            return await BirthdayRepo.get(conn, user_id)

    async def get_birthdays_on_date(self, month: int, day: int) -> List[Birthday]:
        async with self._connection.read() as conn:
            return await BirthdayRepo.get_on_date(conn, month, day)

    async def upsert_birthday_channel(self, config: BirthdayChannelConfig) -> None:
        async with self._connection.transaction() as conn:
            await BirthdayChannelRepo.upsert(conn, config)

    async def get_birthday_channel(self, guild_id) -> Optional[BirthdayChannelConfig]:
        async with self._connection.read() as conn:
            return await BirthdayChannelRepo.get(conn, guild_id)

    async def get_birthday_role(self, guild_id) -> Optional[RoleID]:
        async with self._connection.read() as conn:
            return await BirthdayChannelRepo.get_role(conn, guild_id)

    async def set_birthday_message(self, guild_id, message_id: Optional[int]) -> bool:
        async with self._connection.transaction() as conn:
            return await BirthdayChannelRepo.set_message_id(conn, guild_id, message_id)

    async def remove_birthday_channel(self, guild_id) -> bool:
        async with self._connection.transaction() as conn:
            return await BirthdayChannelRepo.delete(conn, guild_id)

    # ------------------------------------------------------------------
    # Guild settings
    # ------------------------------------------------------------------

    async def set_guild_timezone(self, guild_id, timezone_name: str) -> None:
        async with self._connection.transaction() as conn:
            await GuildSettingsRepo.set_timezone(conn, guild_id, timezone_name)

    async def get_guild_timezone(self, guild_id) -> str:
        """The guild's IANA timezone name, ``"UTC"`` when none was set."""
        async with self._connection.read() as conn:
            return await GuildSettingsRepo.get_timezone(conn, guild_id) or DEFAULT_TIMEZONE

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def upsert_schedule(self, guild_id, task_type: TaskType, cron_expression: str, enabled: bool = True) -> int:
        async with self._connection.transaction() as conn:
            return await ScheduleRepo.upsert(conn, guild_id, task_type, cron_expression, enabled)

    async def set_schedule_enabled(self, guild_id, task_type: TaskType, enabled: bool) -> bool:
        async with self._connection.transaction() as conn:
            return await ScheduleRepo.set_enabled(conn, guild_id, task_type, enabled)

    async def get_all_schedules(self) -> List[Schedule]:
        async with self._connection.read() as conn:
            return await ScheduleRepo.get_all(conn)

    async def get_schedule(self, guild_id, task_type: TaskType) -> Optional[Schedule]:
        async with self._connection.read() as conn:
            return await ScheduleRepo.get(conn, guild_id, task_type)

    async def configure_birthday_schedules(
        self,
        config: BirthdayChannelConfig,
        notify_cron: str,
        role_sync_cron: Optional[str],
    ) -> None:
        """
        Save a guild's birthday channel and its schedules in one transaction.

        The notify schedule is always enabled. The role sync schedule is
        enabled with ``role_sync_cron`` when given, otherwise disabled.
        """
        async with self._connection.transaction() as conn:
            await BirthdayChannelRepo.upsert(conn, config)
            await ScheduleRepo.upsert(conn, config.guild_id, TaskType.BIRTHDAY_NOTIFY, notify_cron, True)
            if role_sync_cron is not None:
                await ScheduleRepo.upsert(conn, config.guild_id, TaskType.BIRTHDAY_ROLE_SYNC, role_sync_cron, True)
            else:
                await ScheduleRepo.set_enabled(conn, config.guild_id, TaskType.BIRTHDAY_ROLE_SYNC, False)

    async def disable_birthdays(self, guild_id) -> bool:
        """Drop the guild's birthday channel and disable both birthday schedules."""
        async with self._connection.transaction() as conn:
            removed = await BirthdayChannelRepo.delete(conn, guild_id)
            await ScheduleRepo.set_enabled(conn, guild_id, TaskType.BIRTHDAY_NOTIFY, False)
            await ScheduleRepo.set_enabled(conn, guild_id, TaskType.BIRTHDAY_ROLE_SYNC, False)
        return removed
