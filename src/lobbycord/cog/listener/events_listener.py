"""Event listener Cog for Lobbycord.

Handles bot lifecycle events: on ready it restores the persistent room
controls and the birthday collection button, and starts the schedule
engine. Also reports slash command errors.
"""

import discord
from discord.ext import commands

from lobbycord.state import LobbycordState
from lobbycord.ui.birthday_collection import BirthdayCollectionView
from lobbycord.ui.room_controls import RoomControlsView
from lobbycord.util.format_utils import format_error
from lobbycord.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and command error handlers."""

    def __init__(self, discord_bot_instance: discord.Bot, state: LobbycordState):
        self.bot = discord_bot_instance
        self.state = state
        self._views_registered = False
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """
        Handle bot startup.

        on_ready fires again after every reconnect; the persistent view is
        registered only once and starting the engine is idempotent.
        """
        if self.bot.user:
            logger.info("[EVENTS LISTENER] Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)
        else:
            logger.warning("[EVENTS LISTENER] Bot partially connected, but user information not yet available.")

        if not self._views_registered:
            self.bot.add_view(RoomControlsView(self.state.rooms))
            self.bot.add_view(BirthdayCollectionView(self.state.birthdays))
            self._views_registered = True
            logger.info("[EVENTS LISTENER] Room control and birthday collection buttons registered")

        self.state.engine.start()

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.listening, name="your lobbies"),
        )

    @commands.Cog.listener(name="on_application_command_error")
    async def on_application_command_error(self, ctx: discord.ApplicationContext, error: discord.DiscordException):
        logger.error("[EVENTS LISTENER] Command /%s failed: %s", getattr(ctx.command, "qualified_name", "?"), error)
        try:
            await ctx.respond(format_error("Something went wrong while running this command."), ephemeral=True)
        except discord.HTTPException as exc:
            logger.debug("[EVENTS LISTENER] Could not report command error: %s", exc)


def setup(discord_bot_instance: discord.Bot, state: LobbycordState) -> None:
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, state))
