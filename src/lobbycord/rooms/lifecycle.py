"""
Lifecycle of lobby-spawned voice rooms.

Joining a lobby gives the member a room of their own, or brings back the
persistent room they archived earlier. Leaving a room that ends up empty
deletes it, or archives it when its owner marked it persistent.

The controller is the only writer of room state. Every change goes to the
:class:`RoomStateCache` first and to the database second; a database failure
is logged and the in-memory state stays authoritative until the next restart.
References that no longer resolve on Discord are purged when an operation
runs into them.
"""

from __future__ import annotations

from typing import Optional, Protocol

from lobbycord.database.database import Database
from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from lobbycord.datatypes.room_datatypes import LobbyRoom, TemporaryRoom
from lobbycord.errors import (
    LobbyConflictError,
    NotRoomOwnerError,
    PersistentRoomExistsError,
    RoomNotFoundError,
)
from lobbycord.platform.discord_client import DiscordPlatformClient
from lobbycord.rooms.state_cache import RoomStateCache
from lobbycord.util.format_utils import format_temp_room_name, sanitize_room_name
from lobbycord.configuration.app_configuration import (
    DEFAULT_ARCHIVE_CATEGORY_NAME,
    DEFAULT_LOBBY_NAME,
    DEFAULT_MAX_ROOM_NAME_LENGTH,
    DEFAULT_MESSAGE_SCAN_LIMIT,
)
from lobbycord.util.logger import get_logger

logger = get_logger("room_lifecycle")


class RoomPromptSender(Protocol):
    """Posts the control prompt into a room after it is created or restored."""

    async def send_welcome(self, room: TemporaryRoom, display_name: str) -> None: ...

    async def send_restored(self, room: TemporaryRoom, display_name: str) -> None: ...


class RoomLifecycleController:
    """
    Creates, archives, restores and deletes temporary rooms.

    Parameters
    ----------
    cache:
        In-memory room state shared with the interaction handlers.
    database:
        Durable copy of the room state.
    platform:
        Discord adapter used for every channel and member operation.
    prompts:
        Sender for the room control prompt. Optional so the controller can be
        built before the UI that depends on it; attach with :meth:`attach_prompts`.
    """

    def __init__(
        self,
        cache: RoomStateCache,
        database: Database,
        platform: DiscordPlatformClient,
        prompts: Optional[RoomPromptSender] = None,
        *,
        archive_category_name: str = DEFAULT_ARCHIVE_CATEGORY_NAME,
        default_lobby_name: str = DEFAULT_LOBBY_NAME,
        message_scan_limit: int = DEFAULT_MESSAGE_SCAN_LIMIT,
        max_name_length: int = DEFAULT_MAX_ROOM_NAME_LENGTH,
    ) -> None:
        self.cache = cache
        self.database = database
        self.platform = platform
        self.prompts = prompts
        self.archive_category_name = archive_category_name
        self.default_lobby_name = default_lobby_name
        self.message_scan_limit = message_scan_limit
        self.max_name_length = max_name_length

    def attach_prompts(self, prompts: RoomPromptSender) -> None:
        self.prompts = prompts

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def load_from_database(self) -> None:
        """Fill the cache with the lobbies and temporary rooms saved in the database."""
        try:
            lobbies = await self.database.get_all_lobby_rooms()
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to load lobbies: %s", exc)
            lobbies = []
        for lobby in lobbies:
            self.cache.lobby_rooms.insert(lobby.room_id, lobby)

        try:
            rooms = await self.database.get_all_temporary_rooms()
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to load temporary rooms: %s", exc)
            rooms = []
        for room in rooms:
            self.cache.temporary_rooms.insert(room.room_id, room)

        logger.info(
            "[ROOM LIFECYCLE] Loaded %d lobbies and %d temporary rooms",
            len(lobbies), len(rooms),
        )

    # ------------------------------------------------------------------
    # Lobbies
    # ------------------------------------------------------------------

    async def create_lobby(self, guild_id: GuildID, name: str | None = None) -> LobbyRoom:
        """Create a new voice channel on Discord and register it as a lobby."""
        room_id = await self.platform.create_voice_room(guild_id, name or self.default_lobby_name)
        return await self._register_lobby(room_id, guild_id)

    async def convert_to_lobby(self, room_id: ChannelID, guild_id: GuildID) -> LobbyRoom:
        """
        Register an existing voice channel as a lobby.

        Raises:
            LobbyConflictError: If the channel already is a lobby or a temporary room.
        """
        if self.cache.is_lobby(room_id):
            raise LobbyConflictError("This channel is already a lobby")
        if self.cache.is_temporary_room(room_id):
            raise LobbyConflictError("A temporary room cannot become a lobby")
        return await self._register_lobby(room_id, guild_id)

    async def _register_lobby(self, room_id: ChannelID, guild_id: GuildID) -> LobbyRoom:
        lobby = LobbyRoom(room_id=ChannelID(room_id), guild_id=GuildID(guild_id))
        self.cache.lobby_rooms.insert(lobby.room_id, lobby)
        try:
            await self.database.insert_lobby_room(lobby.room_id, lobby.guild_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to save lobby %s: %s", lobby.room_id, exc)
        logger.info("[ROOM LIFECYCLE] Registered lobby %s in guild %s", lobby.room_id, lobby.guild_id)
        return lobby

    async def remove_lobby(self, room_id: ChannelID) -> bool:
        """Stop treating a channel as a lobby. Rooms it spawned are left alone."""
        removed = self.cache.lobby_rooms.remove(room_id)
        try:
            await self.database.remove_lobby_room(room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to delete lobby %s from database: %s", room_id, exc)
        return removed is not None

    async def on_channel_deleted(self, room_id: ChannelID) -> None:
        """A channel was deleted on Discord; drop whatever we tracked for it."""
        if self.cache.is_lobby(room_id):
            await self.remove_lobby(room_id)
            logger.info("[ROOM LIFECYCLE] Lobby %s was deleted on Discord", room_id)
        if self.cache.is_temporary_room(room_id):
            await self._purge_stale_room(room_id)

    # ------------------------------------------------------------------
    # Presence events
    # ------------------------------------------------------------------

    async def on_leave(self, room_id: ChannelID) -> None:
        """
        Someone left ``room_id``. Once the room is confirmed empty it is
        archived (persistent) or deleted (everything else).
        """
        if not self.cache.is_temporary_room(room_id):
            return

        async with self.cache.temporary_rooms.locked(room_id) as room:
            if room is None or room.is_archived:
                return

            try:
                member_ids = await self.platform.room_member_ids(room_id)
            except Exception as exc:
                logger.warning("[ROOM LIFECYCLE] Could not read members of room %s: %s", room_id, exc)
                return
            if member_ids is None or member_ids:
                return

            if room.is_persistent:
                try:
                    await self._archive(room)
                except Exception as exc:
                    logger.error("[ROOM LIFECYCLE] Failed to archive room %s: %s", room_id, exc)
                return

            await self._delete(room)

    async def on_join(self, room_id: ChannelID, user_id: UserID, guild_id: GuildID) -> None:
        """
        Someone joined ``room_id``. In a lobby this restores their archived
        room for that lobby, or creates a fresh one.
        """
        if not self.cache.is_lobby(room_id):
            return

        member = await self.platform.fetch_member(guild_id, user_id)
        if member is None:
            logger.error("[ROOM LIFECYCLE] Member %s not found in guild %s", user_id, guild_id)
            return

        try:
            archived_id = await self.database.get_archived_room_for_owner(guild_id, user_id, room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Archived room lookup failed for %s: %s", user_id, exc)
            archived_id = None

        if archived_id is not None:
            try:
                await self.restore_room(member, guild_id, archived_id)
                return
            except Exception as exc:
                logger.warning(
                    "[ROOM LIFECYCLE] Could not restore room %s for %s, creating a new one: %s",
                    archived_id, user_id, exc,
                )
                await self._purge_stale_room(archived_id)

        try:
            await self.create_temporary_room(member, guild_id, room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to create room for %s: %s", user_id, exc)

    # ------------------------------------------------------------------
    # Create / archive / restore / delete
    # ------------------------------------------------------------------

    async def create_temporary_room(self, member, guild_id: GuildID, lobby_room_id: ChannelID) -> TemporaryRoom:
        """
        Create a room for ``member`` next to the lobby, move them in and post the prompt.

        The room copies the lobby's category and permission overwrites and
        grants the owner channel moderation permissions.
        """
        owner_id = UserID(member.id)
        name = format_temp_room_name(member.display_name, self.max_name_length)
        layout = await self.platform.get_room_layout(lobby_room_id)
        room_id = await self.platform.create_owned_room(guild_id, name, layout, owner_id)

        room = TemporaryRoom(
            room_id=ChannelID(room_id),
            owner_id=owner_id,
            lobby_room_id=ChannelID(lobby_room_id),
            guild_id=GuildID(guild_id),
        )
        self.cache.temporary_rooms.insert(room.room_id, room)
        try:
            await self.database.insert_temporary_room(room)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to save room %s: %s", room.room_id, exc)

        logger.info("[ROOM LIFECYCLE] Created room %s for %s", room.room_id, owner_id)

        try:
            await self.platform.move_member(guild_id, owner_id, room.room_id)
        except Exception as exc:
            # The member left the lobby before the move; don't leave an empty room behind
            logger.warning("[ROOM LIFECYCLE] Could not move %s into room %s: %s", owner_id, room.room_id, exc)
            await self.on_leave(room.room_id)
            return room

        await self._send_prompt(room, member.display_name, restored=False)
        return room

    async def _archive(self, room: TemporaryRoom) -> None:
        category_id = await self.get_or_create_archive_category(room.guild_id)
        await self.platform.hide_room(room.room_id, category_id)
        room.is_archived = True
        try:
            await self.database.set_room_archived(room.room_id, True)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to save archived flag for %s: %s", room.room_id, exc)
        logger.info("[ROOM LIFECYCLE] Archived room %s of %s", room.room_id, room.owner_id)

    async def restore_room(self, member, guild_id: GuildID, room_id: ChannelID) -> None:
        """
        Bring an archived room back next to its lobby and move the owner in.

        Raises:
            RoomNotFoundError: If the room is not tracked.
            discord.HTTPException: If Discord refuses to restore the room.
        """
        async with self.cache.temporary_rooms.locked(room_id) as room:
            if room is None:
                raise RoomNotFoundError(room_id)
            layout = await self.platform.get_room_layout(room.lobby_room_id)
            await self.platform.apply_owned_layout(room_id, layout, room.owner_id)
            room.is_archived = False
            try:
                await self.database.set_room_archived(room_id, False)
            except Exception as exc:
                logger.error("[ROOM LIFECYCLE] Failed to clear archived flag for %s: %s", room_id, exc)

        logger.info("[ROOM LIFECYCLE] Restored room %s for %s", room_id, room.owner_id)

        try:
            await self.platform.move_member(guild_id, room.owner_id, room_id)
        except Exception as exc:
            logger.warning("[ROOM LIFECYCLE] Could not move %s into restored room %s: %s", room.owner_id, room_id, exc)
            return

        try:
            removed = await self.platform.purge_bot_component_messages(room_id, self.message_scan_limit)
            if removed:
                logger.debug("[ROOM LIFECYCLE] Removed %d old prompts from room %s", removed, room_id)
        except Exception as exc:
            logger.warning("[ROOM LIFECYCLE] Could not clean old prompts in room %s: %s", room_id, exc)

        await self._send_prompt(room, member.display_name, restored=True)

    async def _delete(self, room: TemporaryRoom) -> None:
        try:
            await self.platform.delete_room(room.room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to delete room %s: %s", room.room_id, exc)
            return

        self.cache.temporary_rooms.remove(room.room_id)
        try:
            await self.database.remove_temporary_room(room.room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to delete room %s from database: %s", room.room_id, exc)
        logger.info("[ROOM LIFECYCLE] Deleted empty room %s", room.room_id)

    async def _purge_stale_room(self, room_id: ChannelID) -> None:
        """Forget a room that no longer exists on Discord."""
        self.cache.temporary_rooms.remove(room_id)
        try:
            await self.database.remove_temporary_room(room_id)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to purge stale room %s: %s", room_id, exc)
        logger.info("[ROOM LIFECYCLE] Purged stale room %s", room_id)

    async def _send_prompt(self, room: TemporaryRoom, display_name: str, *, restored: bool) -> None:
        if self.prompts is None:
            return
        try:
            if restored:
                await self.prompts.send_restored(room, display_name)
            else:
                await self.prompts.send_welcome(room, display_name)
        except Exception as exc:
            logger.warning("[ROOM LIFECYCLE] Failed to post control prompt in room %s: %s", room.room_id, exc)

    # ------------------------------------------------------------------
    # Archive category
    # ------------------------------------------------------------------

    async def get_or_create_archive_category(self, guild_id: GuildID) -> ChannelID:
        """
        The guild's archive category: cached id, then saved id, each checked
        against Discord, otherwise a newly created hidden category.
        """
        async with self.cache.archive_categories.locked(guild_id) as cached:
            if cached is not None:
                if await self.platform.room_exists(cached):
                    return cached
                self.cache.archive_categories.remove(guild_id)

            try:
                stored = await self.database.get_archive_category(guild_id)
            except Exception as exc:
                logger.error("[ROOM LIFECYCLE] Failed to read archive category of %s: %s", guild_id, exc)
                stored = None
            if stored is not None and await self.platform.room_exists(stored):
                self.cache.archive_categories.insert(guild_id, stored)
                return stored

            category_id = await self.platform.create_hidden_category(guild_id, self.archive_category_name)
            self.cache.archive_categories.insert(guild_id, category_id)
            try:
                await self.database.set_archive_category(guild_id, category_id)
            except Exception as exc:
                logger.error("[ROOM LIFECYCLE] Failed to save archive category of %s: %s", guild_id, exc)
            logger.info("[ROOM LIFECYCLE] Created archive category %s in guild %s", category_id, guild_id)
            return category_id

    # ------------------------------------------------------------------
    # Owner actions
    # ------------------------------------------------------------------

    def _owned_room(self, room_id: ChannelID, user_id: UserID) -> TemporaryRoom:
        room = self.cache.temporary_rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        if not room.is_owned_by(user_id):
            raise NotRoomOwnerError(room_id, user_id)
        return room

    async def toggle_persistence(self, room_id: ChannelID, user_id: UserID) -> bool:
        """
        Flip the room's persistent flag and return the new value.

        Enabling is refused while the owner keeps another persistent room from
        the same lobby that still exists on Discord. Records of such rooms that
        no longer exist are purged and do not block.

        Raises:
            RoomNotFoundError: If the room is not tracked.
            NotRoomOwnerError: If ``user_id`` does not own the room.
            PersistentRoomExistsError: If a live persistent room already exists.
        """
        room = self._owned_room(room_id, user_id)
        enable = not room.is_persistent

        if enable:
            others = self.cache.persistent_rooms_from_same_origin(
                room.owner_id, room.guild_id, room.lobby_room_id, exclude_room_id=room.room_id
            )
            for other in others:
                if await self.platform.room_exists(other.room_id):
                    raise PersistentRoomExistsError(other.room_id)
                await self._purge_stale_room(other.room_id)

        def _set(current: TemporaryRoom) -> None:
            current.is_persistent = enable

        if await self.cache.temporary_rooms.update(room_id, _set) is None:
            raise RoomNotFoundError(room_id)

        try:
            await self.database.set_room_persistent(room_id, enable)
        except Exception as exc:
            logger.error("[ROOM LIFECYCLE] Failed to save persistent flag for %s: %s", room_id, exc)

        logger.info("[ROOM LIFECYCLE] Room %s persistent=%s", room_id, enable)
        return enable

    async def rename_room(self, room_id: ChannelID, user_id: UserID, name: str) -> str:
        """
        Rename the room on Discord and return the name actually applied.

        Raises:
            RoomNotFoundError: If the room is not tracked.
            NotRoomOwnerError: If ``user_id`` does not own the room.
            InvalidRoomNameError: If the name is blank.
        """
        self._owned_room(room_id, user_id)
        cleaned = sanitize_room_name(name, self.max_name_length)
        await self.platform.rename_room(room_id, cleaned)
        logger.info("[ROOM LIFECYCLE] Renamed room %s to %r", room_id, cleaned)
        return cleaned
