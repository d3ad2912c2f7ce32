"""
Six-field cron expressions evaluated in UTC.

Fields are ``second minute hour day-of-month month day-of-week``. Parsing and
iteration are done by croniter, so day-of-week uses croniter's numbering:
0 or 7 is Sunday, 1 is Monday through 6 Saturday, and names such as ``MON``
are accepted. Expressions written for schedulers that count Sunday as 1 must
be shifted down by one.

Guilds pick their times in their own timezone; :func:`local_daily_cron`
turns such a wall-clock time into the UTC expression that is stored.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from croniter import CroniterBadDateError

from lobbycord.errors import InvalidCronExpressionError, InvalidTimezoneError

CRON_FIELD_COUNT = 6
DEFAULT_TIMEZONE = "UTC"


def _build(expression: str, start: datetime) -> croniter:
    fields = expression.split()
    if len(fields) != CRON_FIELD_COUNT:
        raise InvalidCronExpressionError(
            expression, f"expected {CRON_FIELD_COUNT} fields, got {len(fields)}"
        )
    try:
        return croniter(" ".join(fields), start, second_at_beginning=True)
    except (ValueError, KeyError, TypeError) as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc


def validate_cron_expression(expression: str) -> str:
    """Return the expression with normalised whitespace.

    Raises:
        InvalidCronExpressionError: If croniter cannot parse it.
    """
    _build(expression, datetime.now(timezone.utc))
    return " ".join(expression.split())


def next_occurrence(expression: str, after: datetime) -> Optional[datetime]:
    """
    First time strictly after ``after`` that matches ``expression``.

    ``after`` is converted to UTC (naive values are taken as UTC). Returns None
    when the expression never fires, e.g. ``0 0 0 30 2 *``.

    Raises:
        InvalidCronExpressionError: If the expression cannot be parsed.
    """
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    else:
        after = after.astimezone(timezone.utc)

    iterator = _build(expression, after)
    try:
        occurrence = iterator.get_next(datetime)
    except CroniterBadDateError:
        return None
    return occurrence.astimezone(timezone.utc)


def build_daily_cron(hour: int, minute: int) -> str:
    """Cron expression firing every day at ``hour:minute:00`` UTC."""
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidCronExpressionError(f"{hour}:{minute}", "hour must be 0-23 and minute 0-59")
    return f"0 {minute} {hour} * * *"


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Split ``"HH:MM"`` into hour and minute.

    Raises:
        InvalidCronExpressionError: If the value is not a valid 24-hour time.
    """
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except ValueError as exc:
        raise InvalidCronExpressionError(value, "expected HH:MM in 24-hour format") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidCronExpressionError(value, "hour must be 0-23 and minute 0-59")
    return hour, minute


def parse_daily_time(value: str) -> str:
    """Turn ``"HH:MM"`` (UTC) into the matching daily cron expression.

    Raises:
        InvalidCronExpressionError: If the value is not a valid 24-hour time.
    """
    return build_daily_cron(*parse_time_of_day(value))


# -------------------- Guild timezones --------------------

def parse_timezone(name: str) -> ZoneInfo:
    """
    Look up an IANA timezone such as ``Europe/Paris``.

    Raises:
        InvalidTimezoneError: If no such timezone exists.
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidTimezoneError(name, "timezone name is empty")
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(name, "unknown IANA timezone") from exc


def local_time_to_utc(
    hour: int,
    minute: int,
    tz: ZoneInfo,
    on_date: date,
    *,
    strict: bool = True,
) -> Tuple[int, int]:
    """
    UTC hour and minute of the wall-clock ``hour:minute`` in ``tz`` on ``on_date``.

    A time that occurs twice (clocks going back) resolves to the first
    occurrence. A time skipped by clocks going forward raises when ``strict``;
    otherwise it is shifted by the missing offset.

    Raises:
        InvalidCronExpressionError: If ``strict`` and the time does not exist
            on ``on_date``.
    """
    local = datetime.combine(on_date, time(hour, minute), tzinfo=tz)
    utc = local.astimezone(timezone.utc)
    if strict and utc.astimezone(tz).replace(tzinfo=None) != local.replace(tzinfo=None):
        raise InvalidCronExpressionError(
            f"{hour:02d}:{minute:02d}",
            f"this time does not exist in {tz.key} on {on_date.isoformat()} (daylight saving change)",
        )
    return utc.hour, utc.minute


def local_daily_cron(value: str, tz: ZoneInfo, on_date: date) -> Tuple[str, str]:
    """
    Daily UTC cron expression for ``"HH:MM"`` in ``tz``.

    The UTC offset is the one in force on ``on_date``; it is not adjusted on
    later daylight saving changes.

    Returns:
        The cron expression and the UTC time as ``"HH:MM"``.

    Raises:
        InvalidCronExpressionError: If the value is malformed or does not exist
            on ``on_date``.
    """
    hour, minute = parse_time_of_day(value)
    utc_hour, utc_minute = local_time_to_utc(hour, minute, tz, on_date)
    return build_daily_cron(utc_hour, utc_minute), f"{utc_hour:02d}:{utc_minute:02d}"


def local_midnight_cron(tz: ZoneInfo, on_date: date) -> str:
    """Daily UTC cron expression for midnight in ``tz``."""
    utc_hour, utc_minute = local_time_to_utc(0, 0, tz, on_date, strict=False)
    return build_daily_cron(utc_hour, utc_minute)
