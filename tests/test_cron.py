from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from lobbycord.datatypes.discord_datatypes import GuildID
from lobbycord.datatypes.schedule_datatypes import Schedule, TaskType
from lobbycord.errors import InvalidCronExpressionError, InvalidTimezoneError
from lobbycord.scheduler.cron import (
    build_daily_cron,
    local_daily_cron,
    local_midnight_cron,
    local_time_to_utc,
    next_occurrence,
    parse_daily_time,
    parse_timezone,
    validate_cron_expression,
)
from lobbycord.scheduler.schedule_engine import find_next_schedule, find_schedules_due_at

NOW = datetime(2025, 3, 10, 7, 0, 0, tzinfo=timezone.utc)


def _schedule(schedule_id: int, cron: str, enabled: bool = True, guild: int | None = 1) -> Schedule:
    return Schedule(
        id=schedule_id,
        guild_id=GuildID(guild) if guild is not None else None,
        task_type=TaskType.BIRTHDAY_NOTIFY,
        cron_expression=cron,
        enabled=enabled,
    )


def test_next_occurrence_is_strictly_after():
    assert next_occurrence("0 0 8 * * *", NOW) == datetime(2025, 3, 10, 8, 0, 0, tzinfo=timezone.utc)
    at_eight = datetime(2025, 3, 10, 8, 0, 0, tzinfo=timezone.utc)
    assert next_occurrence("0 0 8 * * *", at_eight) == datetime(2025, 3, 11, 8, 0, 0, tzinfo=timezone.utc)


def test_next_occurrence_honours_seconds_field():
    assert next_occurrence("30 * * * * *", NOW) == NOW + timedelta(seconds=30)


def test_next_occurrence_converts_to_utc():
    local = NOW.astimezone(timezone(timedelta(hours=2)))
    assert next_occurrence("0 0 8 * * *", local) == datetime(2025, 3, 10, 8, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("expression", ["0 8 * * *", "not a cron", "0 0 25 * * *", "", "0 0 8 * * * *"])
def test_invalid_expressions_raise(expression):
    with pytest.raises(InvalidCronExpressionError):
        validate_cron_expression(expression)


def test_validate_normalises_whitespace():
    assert validate_cron_expression("  0  0 8 * * *  ") == "0 0 8 * * *"


def test_daily_time_helpers():
    assert build_daily_cron(8, 30) == "0 30 8 * * *"
    assert parse_daily_time("07:05") == "0 5 7 * * *"
    with pytest.raises(InvalidCronExpressionError):
        parse_daily_time("25:00")
    with pytest.raises(InvalidCronExpressionError):
        parse_daily_time("eight")


def test_find_next_schedule_skips_disabled():
    schedules = [_schedule(1, "0 0 8 * * *"), _schedule(2, "0 30 7 * * *", enabled=False)]

    run = find_next_schedule(schedules, NOW)

    assert run is not None
    assert run.schedule.id == 1
    assert run.due_at == datetime(2025, 3, 10, 8, 0, 0, tzinfo=timezone.utc)
    assert run.wait_seconds == pytest.approx(3600)


def test_find_next_schedule_picks_soonest():
    schedules = [_schedule(1, "0 30 8 * * *"), _schedule(2, "0 0 8 * * *")]
    run = find_next_schedule(schedules, NOW)
    assert run is not None and run.schedule.id == 2


def test_find_next_schedule_first_wins_ties():
    schedules = [_schedule(5, "0 0 8 * * *"), _schedule(3, "0 0 8 * * *", guild=None)]
    run = find_next_schedule(schedules, NOW)
    assert run is not None and run.schedule.id == 5


def test_find_next_schedule_skips_unparseable():
    schedules = [_schedule(1, "garbage"), _schedule(2, "0 0 9 * * *")]
    run = find_next_schedule(schedules, NOW)
    assert run is not None and run.schedule.id == 2


def test_find_next_schedule_nothing_runnable():
    assert find_next_schedule([], NOW) is None
    assert find_next_schedule([_schedule(1, "0 0 8 * * *", enabled=False)], NOW) is None


def test_find_schedules_due_at_keeps_every_tied_schedule():
    schedules = [
        _schedule(1, "0 0 8 * * *"),
        _schedule(2, "0 0 8 * * *", guild=2),
        _schedule(3, "0 0 9 * * *"),
        _schedule(4, "0 0 8 * * *", enabled=False),
        _schedule(5, "garbage"),
    ]
    due_at = datetime(2025, 3, 10, 8, 0, 0, tzinfo=timezone.utc)

    due = find_schedules_due_at(schedules, NOW, due_at)

    assert [schedule.id for schedule in due] == [1, 2]


PARIS = ZoneInfo("Europe/Paris")


def test_parse_timezone_accepts_iana_names():
    assert parse_timezone("  Asia/Tokyo ").key == "Asia/Tokyo"
    assert parse_timezone("UTC").key == "UTC"


@pytest.mark.parametrize("name", ["", "   ", "Mars/Olympus_Mons"])
def test_parse_timezone_rejects_unknown_names(name):
    with pytest.raises(InvalidTimezoneError):
        parse_timezone(name)


def test_local_time_follows_the_offset_of_the_day():
    assert local_time_to_utc(8, 30, PARIS, date(2025, 1, 15)) == (7, 30)
    assert local_time_to_utc(8, 30, PARIS, date(2025, 7, 15)) == (6, 30)


def test_repeated_local_time_uses_first_occurrence():
    # 02:30 happens twice in Paris on 2025-10-26; the first one is still CEST
    assert local_time_to_utc(2, 30, PARIS, date(2025, 10, 26)) == (0, 30)


def test_skipped_local_time():
    with pytest.raises(InvalidCronExpressionError):
        local_time_to_utc(2, 30, PARIS, date(2025, 3, 30))
    assert local_time_to_utc(2, 30, PARIS, date(2025, 3, 30), strict=False) == (1, 30)


def test_local_daily_cron_reports_utc_time():
    assert local_daily_cron("08:30", PARIS, date(2025, 6, 1)) == ("0 30 6 * * *", "06:30")


@pytest.mark.parametrize(
    "zone,expected",
    [
        ("UTC", "0 0 0 * * *"),
        ("America/New_York", "0 0 5 * * *"),
        ("Asia/Kolkata", "0 30 18 * * *"),
    ],
)
def test_local_midnight_cron(zone, expected):
    assert local_midnight_cron(ZoneInfo(zone), date(2025, 1, 15)) == expected


@pytest.mark.parametrize("weekday", ["0", "7", "SUN"])
def test_sunday_is_zero_or_seven(weekday):
    # NOW is Monday 2025-03-10
    assert next_occurrence(f"0 0 8 * * {weekday}", NOW) == datetime(2025, 3, 16, 8, tzinfo=timezone.utc)


def test_monday_is_one():
    assert next_occurrence("0 0 8 * * 1", NOW) == datetime(2025, 3, 10, 8, tzinfo=timezone.utc)
