from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID
from lobbycord.datatypes.birthday_datatypes import BirthdayChannelConfig
from lobbycord.errors import InvalidBirthdayError, InvalidCronExpressionError, InvalidTimezoneError
from lobbycord.scheduler.reload_signal import ReloadSignal
from lobbycord.services.birthday_service import (
    DEFAULT_NOTIFY_CRON,
    ROLE_SYNC_CRON,
    BirthdayService,
    parse_birthday_fields,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def database():
    db = MagicMock()
    db.upsert_birthday = AsyncMock()
    db.configure_birthday_schedules = AsyncMock()
    db.disable_birthdays = AsyncMock(return_value=True)
    db.get_birthday_channel = AsyncMock(return_value=None)
    db.set_birthday_message = AsyncMock(return_value=True)
    db.set_guild_timezone = AsyncMock()
    db.get_guild_timezone = AsyncMock(return_value="UTC")
    return db


@pytest.fixture
def signal():
    return ReloadSignal()


@pytest.fixture
def service(database, signal):
    return BirthdayService(database, signal, clock=lambda: NOW)


@pytest.mark.parametrize(
    "month,day,year",
    [(13, 1, None), (2, 30, None), (4, 31, None), (2, 29, 2023), (5, 1, 1899), (5, 1, 2026)],
)
def test_invalid_birthdays_are_rejected(service, month, day, year):
    with pytest.raises(InvalidBirthdayError):
        service.validate_birthday(month, day, year)


@pytest.mark.parametrize("month,day,year", [(2, 29, None), (2, 29, 2024), (12, 31, 1900), (6, 1, 2025)])
def test_valid_birthdays_are_accepted(service, month, day, year):
    service.validate_birthday(month, day, year)


@pytest.mark.asyncio
async def test_save_birthday_writes_to_database(service, database):
    birthday = await service.save_birthday(UserID(5), 3, 15, 2000)

    database.upsert_birthday.assert_awaited_once_with(birthday)
    assert birthday.user_id == 5 and birthday.year == 2000


@pytest.mark.asyncio
async def test_invalid_birthday_is_not_saved(service, database):
    with pytest.raises(InvalidBirthdayError):
        await service.save_birthday(UserID(5), 2, 30)
    database.upsert_birthday.assert_not_awaited()


@pytest.mark.asyncio
async def test_configure_with_role_enables_role_sync(service, database, signal):
    config = await service.configure_birthdays(GuildID(1), ChannelID(2), role_id=RoleID(3), custom_header="Hi")

    database.configure_birthday_schedules.assert_awaited_once_with(config, DEFAULT_NOTIFY_CRON, ROLE_SYNC_CRON)
    assert config.custom_header == "Hi"
    assert signal.version == 1


@pytest.mark.asyncio
async def test_configure_without_role_disables_role_sync(service, database):
    config = await service.configure_birthdays(GuildID(1), ChannelID(2), "0 30 9 * * *")

    database.configure_birthday_schedules.assert_awaited_once_with(config, "0 30 9 * * *", None)


@pytest.mark.asyncio
async def test_invalid_cron_is_rejected_before_writing(service, database, signal):
    with pytest.raises(InvalidCronExpressionError):
        await service.configure_birthdays(GuildID(1), ChannelID(2), "every day")

    database.configure_birthday_schedules.assert_not_awaited()
    assert signal.version == 0


@pytest.mark.asyncio
async def test_disable_returns_removed_config_and_publishes(service, database, signal):
    stored = BirthdayChannelConfig(guild_id=GuildID(1), channel_id=ChannelID(2), message_id=77)
    database.get_birthday_channel.return_value = stored

    assert await service.disable_birthdays(GuildID(1)) == stored
    assert signal.version == 1

    database.disable_birthdays.return_value = False
    assert await service.disable_birthdays(GuildID(1)) is None


@pytest.mark.asyncio
async def test_collection_message_id_is_saved(service, database):
    assert await service.set_collection_message(GuildID(1), 88) is True
    database.set_birthday_message.assert_awaited_once_with(GuildID(1), 88)


def test_parse_birthday_fields():
    assert parse_birthday_fields(" 15 ", "3", "") == (3, 15, None)
    assert parse_birthday_fields("29", "2", "2000") == (2, 29, 2000)
    for fields in (("x", "3", ""), ("15", "march", ""), ("15", "3", "nineteen")):
        with pytest.raises(InvalidBirthdayError):
            parse_birthday_fields(*fields)


@pytest.mark.asyncio
async def test_set_guild_timezone_validates_and_saves(service, database):
    tz = await service.set_guild_timezone(GuildID(1), " Europe/Paris ")

    assert tz.key == "Europe/Paris"
    database.set_guild_timezone.assert_awaited_once_with(GuildID(1), "Europe/Paris")

    with pytest.raises(InvalidTimezoneError):
        await service.set_guild_timezone(GuildID(1), "Mars/Olympus_Mons")
    database.set_guild_timezone.assert_awaited_once()


@pytest.mark.asyncio
async def test_daily_times_in_utc_guild(service):
    times = await service.resolve_daily_times(GuildID(1), "08:00")

    assert times.timezone_name == "UTC"
    assert times.notify_cron == DEFAULT_NOTIFY_CRON
    assert times.role_sync_cron == ROLE_SYNC_CRON
    assert times.utc_time == "08:00"


@pytest.mark.asyncio
async def test_daily_times_follow_guild_timezone(service, database):
    database.get_guild_timezone.return_value = "Europe/Paris"

    times = await service.resolve_daily_times(GuildID(1), "08:30")

    # Paris is UTC+2 in June
    assert times.notify_cron == "0 30 6 * * *"
    assert times.utc_time == "06:30"
    assert times.role_sync_cron == "0 0 22 * * *"


@pytest.mark.asyncio
async def test_time_skipped_by_daylight_saving_is_rejected(database, signal):
    spring_forward = datetime(2025, 3, 30, 6, 0, tzinfo=timezone.utc)
    service = BirthdayService(database, signal, clock=lambda: spring_forward)
    database.get_guild_timezone.return_value = "Europe/Paris"

    with pytest.raises(InvalidCronExpressionError):
        await service.resolve_daily_times(GuildID(1), "02:30")


@pytest.mark.asyncio
async def test_configure_uses_given_role_sync_cron(service, database):
    config = await service.configure_birthdays(
        GuildID(1), ChannelID(2), "0 30 6 * * *", role_sync_cron="0 0 22 * * *", role_id=RoleID(3)
    )

    database.configure_birthday_schedules.assert_awaited_once_with(config, "0 30 6 * * *", "0 0 22 * * *")
