"""
Lobby setup commands.

- /create_lobby: create a new voice channel that spawns temporary rooms
- /convert_to_lobby: turn an existing voice channel into a lobby
- /remove_lobby: stop a voice channel from spawning rooms

All three require the Manage Channels permission and reply ephemerally.
"""

import discord
from discord.ext import commands

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID
from lobbycord.errors import LobbyConflictError
from lobbycord.state import LobbycordState
from lobbycord.util.format_utils import format_error, format_success
from lobbycord.util.logger import get_logger

logger = get_logger("lobby_commands")


class LobbyCommandsCog(commands.Cog):
    """Slash commands for managing lobbies."""

    def __init__(self, discord_bot_instance: discord.Bot, state: LobbycordState):
        self.discord_bot_instance = discord_bot_instance
        self.rooms = state.rooms
        logger.info("[LOBBY CMDS] Lobby commands cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond(format_error("This command can only be used in a server."), ephemeral=True)
            return False
        permissions = getattr(ctx.user, "guild_permissions", None)
        if permissions is None or not permissions.manage_channels:
            await ctx.respond(format_error("You need the Manage Channels permission."), ephemeral=True)
            return False
        return True

    @commands.slash_command(
        name="create_lobby",
        description="Create a voice channel that gives everyone who joins a room of their own.",
    )
    async def create_lobby(
        self,
        ctx: discord.ApplicationContext,
        name: discord.Option(str, "Name of the lobby channel", required=False, default=None),  # type: ignore[valid-type]
    ):
        if not await self._check_permissions(ctx):
            return
        await ctx.defer(ephemeral=True)
        try:
            lobby = await self.rooms.create_lobby(GuildID(ctx.guild_id), name)
        except discord.HTTPException as exc:
            logger.error("[LOBBY CMDS] Failed to create lobby in guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup(format_error("Failed to create the lobby channel."), ephemeral=True)
            return
        await ctx.send_followup(format_success(f"Lobby created: <#{lobby.room_id}>"), ephemeral=True)

    @commands.slash_command(
        name="convert_to_lobby",
        description="Turn an existing voice channel into a lobby.",
    )
    async def convert_to_lobby(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.Option(discord.VoiceChannel, "Voice channel to convert"),  # type: ignore[valid-type]
    ):
        if not await self._check_permissions(ctx):
            return
        try:
            lobby = await self.rooms.convert_to_lobby(ChannelID.from_channel(channel), GuildID(ctx.guild_id))
        except LobbyConflictError as exc:
            await ctx.respond(format_error(str(exc)), ephemeral=True)
            return
        await ctx.respond(format_success(f"<#{lobby.room_id}> is now a lobby"), ephemeral=True)

    @commands.slash_command(
        name="remove_lobby",
        description="Stop a voice channel from creating temporary rooms.",
    )
    async def remove_lobby(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.Option(discord.VoiceChannel, "Lobby channel to remove"),  # type: ignore[valid-type]
    ):
        if not await self._check_permissions(ctx):
            return
        if await self.rooms.remove_lobby(ChannelID.from_channel(channel)):
            await ctx.respond(format_success(f"<#{channel.id}> is no longer a lobby"), ephemeral=True)
        else:
            await ctx.respond(format_error(f"<#{channel.id}> is not a lobby"), ephemeral=True)


def setup(discord_bot_instance: discord.Bot, state: LobbycordState) -> None:
    discord_bot_instance.add_cog(LobbyCommandsCog(discord_bot_instance, state))
