"""
Birthday configuration used by the slash commands and the collection form.

Validates user input, writes birthdays, birthday channels, guild timezones and
birthday schedules to the database, and publishes on the reload signal
whenever a schedule changes so the schedule engine picks it up without a
restart.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from lobbycord.database.database import Database
from lobbycord.datatypes.birthday_datatypes import Birthday, BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID
from lobbycord.datatypes.schedule_datatypes import GuildDailyTimes
from lobbycord.errors import InvalidBirthdayError
from lobbycord.scheduler.cron import (
    local_daily_cron,
    local_midnight_cron,
    parse_timezone,
    validate_cron_expression,
)
from lobbycord.scheduler.reload_signal import ReloadSignal
from lobbycord.util.date_utils import (
    MIN_BIRTH_YEAR,
    date_exists,
    get_month_name,
    is_valid_date,
    utc_now,
)
from lobbycord.util.logger import get_logger

logger = get_logger("birthday_service")

DEFAULT_NOTIFY_CRON = "0 0 8 * * *"
ROLE_SYNC_CRON = "0 0 0 * * *"


def parse_birthday_fields(day_text: str, month_text: str, year_text: str = "") -> Tuple[int, int, Optional[int]]:
    """
    Parse the free-text day, month and optional year typed into the birthday form.

    Returns:
        ``(month, day, year)`` with ``year`` None when left blank.

    Raises:
        InvalidBirthdayError: If a field is not a number.
    """
    try:
        day = int(day_text.strip())
    except ValueError as exc:
        raise InvalidBirthdayError("Day must be a number between 1 and 31") from exc
    try:
        month = int(month_text.strip())
    except ValueError as exc:
        raise InvalidBirthdayError("Month must be a number between 1 and 12") from exc

    year_text = (year_text or "").strip()
    if not year_text:
        return month, day, None
    try:
        return month, day, int(year_text)
    except ValueError as exc:
        raise InvalidBirthdayError("Year must be a number, or leave it empty") from exc


class BirthdayService:
    """Birthday, guild timezone and birthday-schedule management."""

    def __init__(
        self,
        database: Database,
        reload_signal: ReloadSignal,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.database = database
        self.reload_signal = reload_signal
        self.clock = clock

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_birthday(self, month: int, day: int, year: Optional[int] = None) -> None:
        """
        Raises:
            InvalidBirthdayError: If the month is not 1-12, the day cannot occur
                in that month, the year is before 1900 or in the future, or the
                full date does not exist (29 February outside a leap year).
        """
        if not 1 <= month <= 12:
            raise InvalidBirthdayError("Month must be between 1 and 12")
        if not is_valid_date(month, day):
            raise InvalidBirthdayError(f"{get_month_name(month)} has no day {day}")
        if year is None:
            return

        current_year = self.clock().year
        if year < MIN_BIRTH_YEAR or year > current_year:
            raise InvalidBirthdayError(f"Year must be between {MIN_BIRTH_YEAR} and {current_year}")
        if not date_exists(year, month, day):
            raise InvalidBirthdayError(f"{day} {get_month_name(month)} {year} does not exist")

    # ------------------------------------------------------------------
    # Birthdays
    # ------------------------------------------------------------------

    async def save_birthday(self, user_id: UserID, month: int, day: int, year: Optional[int] = None) -> Birthday:
        self.validate_birthday(month, day, year)
        birthday = Birthday(user_id=UserID(user_id), month=month, day=day, year=year)
        await self.database.upsert_birthday(birthday)
        logger.info("[BIRTHDAY SERVICE] Saved birthday of %s (%s)", birthday.user_id, birthday.formatted_date())
        return birthday

    async def get_birthday(self, user_id: UserID) -> Optional[Birthday]:
        return await self.database.get_birthday(user_id)

    # ------------------------------------------------------------------
    # Guild timezone
    # ------------------------------------------------------------------

    async def set_guild_timezone(self, guild_id: GuildID, timezone_name: str) -> ZoneInfo:
        """
        Save the guild's timezone. Schedules already stored keep their UTC time
        until ``/birthday_setup`` runs again.

        Raises:
            InvalidTimezoneError: If the name is not an IANA timezone.
        """
        tz = parse_timezone(timezone_name)
        await self.database.set_guild_timezone(guild_id, tz.key)
        logger.info("[BIRTHDAY SERVICE] Timezone of guild %s set to %s", guild_id, tz.key)
        return tz

    async def get_guild_timezone(self, guild_id: GuildID) -> ZoneInfo:
        """
        Raises:
            InvalidTimezoneError: If the stored name is no longer a known timezone.
        """
        return parse_timezone(await self.database.get_guild_timezone(guild_id))

    async def resolve_daily_times(self, guild_id: GuildID, time_text: str) -> GuildDailyTimes:
        """
        Turn the guild-local announcement time and local midnight into UTC crons.

        The offset in force today is used, so a guild observing daylight saving
        time shifts by an hour until ``/birthday_setup`` runs again.

        Raises:
            InvalidTimezoneError: If the stored timezone is unknown.
            InvalidCronExpressionError: If ``time_text`` is malformed or does
                not exist today in the guild's timezone.
        """
        tz = await self.get_guild_timezone(guild_id)
        today = self.clock().astimezone(tz).date()
        notify_cron, utc_time = local_daily_cron(time_text, tz, today)
        return GuildDailyTimes(
            timezone_name=tz.key,
            notify_cron=notify_cron,
            role_sync_cron=local_midnight_cron(tz, today),
            utc_time=utc_time,
        )

    # ------------------------------------------------------------------
    # Guild configuration
    # ------------------------------------------------------------------

    async def configure_birthdays(
        self,
        guild_id: GuildID,
        channel_id: ChannelID,
        notify_cron: str = DEFAULT_NOTIFY_CRON,
        *,
        role_sync_cron: str = ROLE_SYNC_CRON,
        role_id: Optional[RoleID] = None,
        custom_message: Optional[str] = None,
        custom_message_without_age: Optional[str] = None,
        custom_header: Optional[str] = None,
        custom_footer: Optional[str] = None,
        collection_title: Optional[str] = None,
        collection_description: Optional[str] = None,
        collection_button_label: Optional[str] = None,
    ) -> BirthdayChannelConfig:
        """
        Save the guild's birthday channel and schedules, then signal a reload.

        Announcements follow ``notify_cron``. When ``role_id`` is given the
        role is synchronised on ``role_sync_cron`` (midnight UTC unless the
        caller passes the guild's local midnight); without it the role sync
        schedule is disabled.

        Raises:
            InvalidCronExpressionError: If either expression does not parse.
        """
        notify_cron = validate_cron_expression(notify_cron)
        role_sync_cron = validate_cron_expression(role_sync_cron)
        config = BirthdayChannelConfig(
            guild_id=GuildID(guild_id),
            channel_id=ChannelID(channel_id),
            role_id=RoleID(role_id) if role_id is not None else None,
            custom_message=custom_message,
            custom_message_without_age=custom_message_without_age,
            custom_header=custom_header,
            custom_footer=custom_footer,
            collection_title=collection_title,
            collection_description=collection_description,
            collection_button_label=collection_button_label,
        )
        await self.database.configure_birthday_schedules(
            config,
            notify_cron,
            role_sync_cron if config.role_id is not None else None,
        )
        self.reload_signal.publish()
        logger.info(
            "[BIRTHDAY SERVICE] Birthdays configured for guild %s in channel %s (%s)",
            config.guild_id, config.channel_id, notify_cron,
        )
        return config

    async def set_collection_message(self, guild_id: GuildID, message_id: Optional[int]) -> bool:
        """Remember which message carries the guild's "set my birthday" button."""
        return await self.database.set_birthday_message(guild_id, message_id)

    async def disable_birthdays(self, guild_id: GuildID) -> Optional[BirthdayChannelConfig]:
        """Remove the guild's birthday channel and disable its schedules.

        Returns:
            The configuration that was removed, so the caller can take down its
            collection message, or None if birthdays were not configured.
        """
        config = await self.database.get_birthday_channel(guild_id)
        removed = await self.database.disable_birthdays(guild_id)
        self.reload_signal.publish()
        logger.info("[BIRTHDAY SERVICE] Birthdays disabled for guild %s", guild_id)
        return config if removed else None

    async def get_birthday_channel(self, guild_id: GuildID) -> Optional[BirthdayChannelConfig]:
        return await self.database.get_birthday_channel(guild_id)
