"""
Birthday commands.

- /birthday set, /birthday show: members manage their own birthday
- /setup_timezone: the server's timezone, used to read setup times
- /birthday_setup: choose the announcement channel, time, role and texts, and
  post the "Set My Birthday" collection message
- /birthday_disable: turn announcements off

Setup, timezone and disable require the Manage Server permission. Replies
are ephemeral.
"""

from datetime import datetime, timezone

import discord
from discord.ext import commands

from lobbycord.datatypes.birthday_datatypes import BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID
from lobbycord.errors import InvalidBirthdayError, InvalidCronExpressionError, InvalidTimezoneError
from lobbycord.state import LobbycordState
from lobbycord.ui.birthday_collection import BirthdayCollectionView
from lobbycord.util.date_utils import format_date_display
from lobbycord.util.format_utils import build_collection_message, format_error, format_success
from lobbycord.util.logger import get_logger

logger = get_logger("birthday_commands")

TIMEZONE_HELP = (
    "Please use a valid IANA timezone name like:\n"
    "• Europe/Paris\n"
    "• America/New_York\n"
    "• Asia/Tokyo\n"
    "• UTC\n\n"
    "You can find a full list at: https://en.wikipedia.org/wiki/List_of_tz_database_time_zones"
)


def format_setup_summary(
    channel_id: int,
    time_text: str,
    timezone_name: str,
    utc_time: str,
    has_role: bool,
    collection_posted: bool = True,
) -> str:
    role_line = "\n✅ Birthday role configured" if has_role else ""
    collection_line = "" if collection_posted else "\n⚠️ Could not post the birthday collection message"
    return format_success(
        "**Birthday notifications configured!**\n\n"
        f"📍 Channel: <#{channel_id}>\n"
        f"⏰ Time: {time_text} {timezone_name} (stored as {utc_time} UTC){role_line}{collection_line}"
    )


class BirthdayCommandsCog(commands.Cog):
    """Birthday self-service and per-server birthday configuration."""

    birthday = discord.SlashCommandGroup("birthday", "Manage your birthday")

    def __init__(self, discord_bot_instance: discord.Bot, state: LobbycordState):
        self.discord_bot_instance = discord_bot_instance
        self.birthdays = state.birthdays
        self.platform = state.platform
        logger.info("[BIRTHDAY CMDS] Birthday commands cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond(format_error("This command can only be used in a server."), ephemeral=True)
            return False
        permissions = getattr(ctx.user, "guild_permissions", None)
        if permissions is None or not permissions.manage_guild:
            await ctx.respond(format_error("You need the Manage Server permission."), ephemeral=True)
            return False
        return True

    async def _remove_collection_message(self, config: BirthdayChannelConfig | None) -> None:
        if config is None or config.message_id is None:
            return
        try:
            await self.platform.delete_message(config.channel_id, config.message_id)
        except discord.HTTPException as exc:
            logger.warning(
                "[BIRTHDAY CMDS] Could not delete collection message %s in guild %s: %s",
                config.message_id, config.guild_id, exc,
            )

    @birthday.command(name="set", description="Save your birthday.")
    async def birthday_set(
        self,
        ctx: discord.ApplicationContext,
        day: discord.Option(int, "Day of the month", min_value=1, max_value=31),  # type: ignore[valid-type]
        month: discord.Option(int, "Month (1-12)", min_value=1, max_value=12),  # type: ignore[valid-type]
        year: discord.Option(int, "Birth year, to show your age", required=False, default=None),  # type: ignore[valid-type]
    ):
        try:
            birthday = await self.birthdays.save_birthday(UserID.from_user(ctx.user), month, day, year)
        except InvalidBirthdayError as exc:
            await ctx.respond(format_error(str(exc)), ephemeral=True)
            return
        await ctx.respond(
            format_success(f"Birthday saved: {format_date_display(birthday.month, birthday.day)}"
                           + (f" {birthday.year}" if birthday.year else "")),
            ephemeral=True,
        )

    @birthday.command(name="show", description="Show the birthday you saved.")
    async def birthday_show(self, ctx: discord.ApplicationContext):
        birthday = await self.birthdays.get_birthday(UserID.from_user(ctx.user))
        if birthday is None:
            await ctx.respond("You haven't saved a birthday yet. Use `/birthday set`.", ephemeral=True)
            return
        await ctx.respond(f"🎂 Your birthday: {birthday.formatted_date()}", ephemeral=True)

    @commands.slash_command(
        name="setup_timezone",
        description="Set the timezone used to read times in this server's birthday setup.",
    )
    async def setup_timezone(
        self,
        ctx: discord.ApplicationContext,
        timezone_name: discord.Option(str, "Timezone (e.g., Europe/Paris, America/New_York, Asia/Tokyo)", name="timezone"),  # type: ignore[valid-type]
    ):
        if not await self._check_permissions(ctx):
            return
        try:
            tz = await self.birthdays.set_guild_timezone(GuildID(ctx.guild_id), timezone_name)
        except InvalidTimezoneError:
            await ctx.respond(
                f"{format_error(f'Invalid timezone: {timezone_name!r}')}\n{TIMEZONE_HELP}", ephemeral=True
            )
            return

        now = datetime.now(timezone.utc).astimezone(tz)
        await ctx.respond(
            format_success(
                "**Server timezone configured!**\n"
                f"Timezone: **{tz.key}**\n"
                f"Current time: **{now.strftime('%Y-%m-%d %H:%M:%S %Z')}**\n\n"
                "Run `/birthday_setup` again to move existing birthday schedules to this timezone."
            ),
            ephemeral=True,
        )

    @commands.slash_command(
        name="birthday_setup",
        description="Announce birthdays in a channel every day.",
    )
    async def birthday_setup(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.Option(discord.TextChannel, "Channel for birthday announcements"),  # type: ignore[valid-type]
        time: discord.Option(str, "Announcement time, HH:MM in the server timezone (default 08:00)", required=False, default="08:00"),  # type: ignore[valid-type]
        role: discord.Option(discord.Role, "Role given to members on their birthday", required=False, default=None),  # type: ignore[valid-type]
        custom_message: discord.Option(str, "Line for members with age: {user}, {mention}, {date}, {age}", required=False, default=None),  # type: ignore[valid-type]
        custom_message_without_age: discord.Option(str, "Line for members without age: {user}, {mention}, {date}", required=False, default=None),  # type: ignore[valid-type]
        custom_header: discord.Option(str, "Text shown above the list", required=False, default=None),  # type: ignore[valid-type]
        custom_footer: discord.Option(str, "Text shown below the list", required=False, default=None),  # type: ignore[valid-type]
        collection_title: discord.Option(str, "Title of the birthday collection message", required=False, default=None),  # type: ignore[valid-type]
        collection_description: discord.Option(str, "Text of the birthday collection message", required=False, default=None),  # type: ignore[valid-type]
        collection_button: discord.Option(str, "Label of the 'Set My Birthday' button", required=False, default=None),  # type: ignore[valid-type]
    ):
        if not await self._check_permissions(ctx):
            return
        await ctx.defer(ephemeral=True)

        guild_id = GuildID(ctx.guild_id)
        try:
            times = await self.birthdays.resolve_daily_times(guild_id, time)
        except InvalidTimezoneError as exc:
            await ctx.send_followup(
                format_error(f"Invalid timezone stored for this server: {exc.name!r}. Use `/setup_timezone` to fix it."),
                ephemeral=True,
            )
            return
        except InvalidCronExpressionError as exc:
            await ctx.send_followup(format_error(exc.reason), ephemeral=True)
            return

        previous = await self.birthdays.get_birthday_channel(guild_id)
        config = await self.birthdays.configure_birthdays(
            guild_id,
            ChannelID.from_channel(channel),
            times.notify_cron,
            role_sync_cron=times.role_sync_cron,
            role_id=RoleID.from_role(role) if role else None,
            custom_message=custom_message,
            custom_message_without_age=custom_message_without_age,
            custom_header=custom_header,
            custom_footer=custom_footer,
            collection_title=collection_title,
            collection_description=collection_description,
            collection_button_label=collection_button,
        )

        await self._remove_collection_message(previous)
        collection_posted = True
        try:
            message_id = await self.platform.send_message(
                config.channel_id,
                build_collection_message(collection_title, collection_description),
                view=BirthdayCollectionView(self.birthdays, collection_button),
            )
            await self.birthdays.set_collection_message(guild_id, message_id)
        except discord.HTTPException as exc:
            collection_posted = False
            logger.warning("[BIRTHDAY CMDS] Could not post collection message in %s: %s", config.channel_id, exc)

        await ctx.send_followup(
            format_setup_summary(
                channel.id, time.strip(), times.timezone_name, times.utc_time, role is not None, collection_posted
            ),
            ephemeral=True,
        )

    @commands.slash_command(
        name="birthday_disable",
        description="Stop birthday announcements and role updates in this server.",
    )
    async def birthday_disable(self, ctx: discord.ApplicationContext):
        if not await self._check_permissions(ctx):
            return
        removed = await self.birthdays.disable_birthdays(GuildID(ctx.guild_id))
        if removed is None:
            await ctx.respond("Birthday announcements were not configured.", ephemeral=True)
            return
        await self._remove_collection_message(removed)
        await ctx.respond(format_success("Birthday announcements disabled."), ephemeral=True)


def setup(discord_bot_instance: discord.Bot, state: LobbycordState) -> None:
    discord_bot_instance.add_cog(BirthdayCommandsCog(discord_bot_instance, state))
