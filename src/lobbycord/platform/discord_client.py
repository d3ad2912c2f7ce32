"""
Thin adapter over the py-cord bot.

The room lifecycle controller and the birthday task runner talk to Discord
only through :class:`DiscordPlatformClient`, which keeps py-cord types
(permission overwrites, channel objects, iterators) out of their logic and
gives tests a single seam to replace with an ``AsyncMock``.

Lookups that treat "not there" as an answer (``room_exists``,
``room_member_ids``, ``fetch_member``) translate ``discord.NotFound`` into a
negative result. Everything else raises ``discord.HTTPException`` to the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import discord

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID
from lobbycord.util.logger import get_logger

logger = get_logger("discord_client")

Overwrites = Dict[Union[discord.Role, discord.Member, discord.Object], discord.PermissionOverwrite]

OWNER_PERMISSIONS = {
    "manage_channels": True,
    "move_members": True,
    "mute_members": True,
    "deafen_members": True,
}


@dataclass
class RoomLayout:
    """Where a room sits and who may see it: category plus permission overwrites."""
    category_id: Optional[int] = None
    overwrites: Overwrites = field(default_factory=dict)


def owner_overwrite(base: discord.PermissionOverwrite | None = None) -> discord.PermissionOverwrite:
    """``base`` (or an empty overwrite) with the room owner's moderation permissions granted."""
    if base is None:
        grant = discord.PermissionOverwrite()
    else:
        allow, deny = base.pair()
        grant = discord.PermissionOverwrite.from_pair(allow, deny)
    grant.update(**OWNER_PERMISSIONS)
    return grant


def with_owner_overwrite(overwrites: Overwrites, owner_id: int) -> Overwrites:
    """
    Copy ``overwrites`` and grant the owner the room moderation permissions.

    An existing member overwrite for the owner is merged into the grant rather
    than duplicated.
    """
    merged: Overwrites = {}
    existing: discord.PermissionOverwrite | None = None
    for target, overwrite in overwrites.items():
        if target.id == owner_id and not isinstance(target, discord.Role):
            existing = overwrite
            continue
        merged[target] = overwrite
    merged[discord.Object(id=owner_id)] = owner_overwrite(existing)
    return merged


def hidden_overwrites(guild: discord.Guild) -> Overwrites:
    """Overwrites that hide a channel from @everyone."""
    return {guild.default_role: discord.PermissionOverwrite(view_channel=False, connect=False)}


class DiscordPlatformClient:
    """Room and member operations the rest of Lobbycord needs from Discord."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _guild(self, guild_id) -> discord.Guild:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            raise discord.ClientException(f"Guild {int(guild_id)} is not available")
        return guild

    async def _channel(self, channel_id):
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    def guild_ids(self) -> List[GuildID]:
        return [GuildID(guild.id) for guild in self.bot.guilds]

    async def room_exists(self, room_id) -> bool:
        """Ask Discord whether the channel still exists.

        Any failure to confirm it counts as "gone", so callers can purge stale
        records.
        """
        try:
            await self.bot.fetch_channel(int(room_id))
        except discord.NotFound:
            return False
        except discord.HTTPException as exc:
            logger.warning("[DISCORD CLIENT] Could not confirm channel %s exists: %s", room_id, exc)
            return False
        return True

    async def room_member_ids(self, room_id) -> Optional[List[int]]:
        """Ids of members currently connected to a voice room, or None when unknown."""
        channel = self.bot.get_channel(int(room_id))
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(int(room_id))
            except discord.NotFound:
                return None
        if not isinstance(channel, discord.VoiceChannel):
            return None
        return [member.id for member in channel.members]

    async def fetch_member(self, guild_id, user_id) -> Optional[discord.Member]:
        """Guild member for ``user_id``; None if not a member or the lookup failed."""
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            return None
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.HTTPException as exc:
            logger.debug("[DISCORD CLIENT] Member %s not resolved in guild %s: %s", user_id, guild_id, exc)
            return None

    async def fetch_members(self, guild_id) -> List[discord.Member]:
        guild = self._guild(guild_id)
        return [member async for member in guild.fetch_members(limit=None)]

    async def get_room_layout(self, room_id) -> RoomLayout:
        channel = await self._channel(room_id)
        return RoomLayout(category_id=channel.category_id, overwrites=dict(channel.overwrites))

    # ------------------------------------------------------------------
    # Channel management
    # ------------------------------------------------------------------

    async def create_voice_room(self, guild_id, name: str) -> ChannelID:
        channel = await self._guild(guild_id).create_voice_channel(name)
        return ChannelID(channel.id)

    async def create_owned_room(self, guild_id, name: str, layout: RoomLayout, owner_id) -> ChannelID:
        """Create a voice room laid out like ``layout`` with owner permissions for ``owner_id``."""
        guild = self._guild(guild_id)
        category = guild.get_channel(layout.category_id) if layout.category_id else None
        channel = await guild.create_voice_channel(
            name,
            category=category,
            overwrites=with_owner_overwrite(layout.overwrites, int(owner_id)),
        )
        return ChannelID(channel.id)

    async def apply_owned_layout(self, room_id, layout: RoomLayout, owner_id) -> None:
        """Move a room back under ``layout`` and re-grant owner permissions."""
        channel = await self._channel(room_id)
        category = channel.guild.get_channel(layout.category_id) if layout.category_id else None
        await channel.edit(
            category=category,
            overwrites=with_owner_overwrite(layout.overwrites, int(owner_id)),
        )

    async def create_hidden_category(self, guild_id, name: str) -> ChannelID:
        guild = self._guild(guild_id)
        category = await guild.create_category(name, overwrites=hidden_overwrites(guild))
        return ChannelID(category.id)

    async def hide_room(self, room_id, category_id) -> None:
        """Move a room into ``category_id`` and hide it from @everyone."""
        channel = await self._channel(room_id)
        category = channel.guild.get_channel(int(category_id))
        if category is None:
            category = await self.bot.fetch_channel(int(category_id))
        await channel.edit(category=category, overwrites=hidden_overwrites(channel.guild))

    async def rename_room(self, room_id, name: str) -> None:
        channel = await self._channel(room_id)
        await channel.edit(name=name)

    async def delete_room(self, room_id) -> bool:
        """Delete a channel. False if it was already gone."""
        try:
            channel = await self._channel(room_id)
            await channel.delete()
        except discord.NotFound:
            return False
        return True

    # ------------------------------------------------------------------
    # Members and roles
    # ------------------------------------------------------------------

    async def move_member(self, guild_id, user_id, room_id) -> None:
        member = await self.fetch_member(guild_id, user_id)
        if member is None:
            raise discord.ClientException(f"Member {int(user_id)} not found in guild {int(guild_id)}")
        channel = await self._channel(room_id)
        await member.move_to(channel)

    async def add_role(self, member: discord.Member, role_id, reason: str | None = None) -> None:
        await member.add_roles(discord.Object(id=int(role_id)), reason=reason)

    async def remove_role(self, member: discord.Member, role_id, reason: str | None = None) -> None:
        await member.remove_roles(discord.Object(id=int(role_id)), reason=reason)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(self, channel_id, content: str, view: discord.ui.View | None = None) -> int:
        """Post ``content`` (with ``view`` when given) and return the message id."""
        channel = await self._channel(channel_id)
        if view is None:
            message = await channel.send(content)
        else:
            message = await channel.send(content, view=view)
        return message.id

    async def delete_message(self, channel_id, message_id) -> bool:
        """Delete one message. False if it or its channel was already gone."""
        try:
            channel = await self._channel(channel_id)
            message = await channel.fetch_message(int(message_id))
            await message.delete()
        except discord.NotFound:
            return False
        return True

    async def purge_bot_component_messages(self, room_id, limit: int) -> int:
        """
        Delete the bot's own messages that carry components among the last ``limit``.

        Individual delete failures are logged and skipped. Returns how many
        messages were deleted.
        """
        if limit <= 0 or self.bot.user is None:
            return 0
        channel = await self._channel(room_id)
        deleted = 0
        async for message in channel.history(limit=limit):
            if message.author.id != self.bot.user.id or not message.components:
                continue
            try:
                await message.delete()
                deleted += 1
            except discord.HTTPException as exc:
                logger.warning("[DISCORD CLIENT] Failed to delete old prompt %s: %s", message.id, exc)
        return deleted
