"""Voice presence listener: turns voice state changes into room lifecycle events."""

from __future__ import annotations

import discord
from discord.ext import commands

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from lobbycord.state import LobbycordState
from lobbycord.util.logger import get_logger

logger = get_logger("voice_listener")


class VoiceListenerCog(commands.Cog):
    """Feeds joins, leaves and channel deletions to the room lifecycle controller."""

    def __init__(self, discord_bot_instance: discord.Bot, state: LobbycordState):
        self.bot = discord_bot_instance
        self.rooms = state.rooms
        logger.info("[VOICE LISTENER] Voice listener cog loaded")

    @commands.Cog.listener(name="on_voice_state_update")
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ):
        """
        Handle a member joining, leaving or switching voice channels.

        Mute, deafen and stream changes keep the same channel and are ignored.
        A switch is handled as a leave of the old channel followed by a join
        of the new one.
        """
        before_id = before.channel.id if before.channel else None
        after_id = after.channel.id if after.channel else None
        if before_id == after_id:
            return

        if before_id is not None:
            try:
                await self.rooms.on_leave(ChannelID(before_id))
            except Exception as exc:
                logger.error("[VOICE LISTENER] Leave handling failed for channel %s: %s", before_id, exc)

        if after_id is not None:
            try:
                await self.rooms.on_join(ChannelID(after_id), UserID.from_user(member), GuildID.from_guild(member.guild))
            except Exception as exc:
                logger.error("[VOICE LISTENER] Join handling failed for channel %s: %s", after_id, exc)

    @commands.Cog.listener(name="on_guild_channel_delete")
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel):
        try:
            await self.rooms.on_channel_deleted(ChannelID(channel.id))
        except Exception as exc:
            logger.error("[VOICE LISTENER] Cleanup after deletion of %s failed: %s", channel.id, exc)


def setup(discord_bot_instance: discord.Bot, state: LobbycordState) -> None:
    discord_bot_instance.add_cog(VoiceListenerCog(discord_bot_instance, state))
