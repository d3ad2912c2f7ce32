"""Calendar helpers for birthdays. Everything here works in UTC."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Tuple

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Longest day of each month in any year; February allows the 29th
_MAX_DAYS = {1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30, 7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31}

MIN_BIRTH_YEAR = 1900


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def is_valid_date(month: int, day: int) -> bool:
    """Return True if ``day`` can occur in ``month`` in at least one year.

    February 29th is accepted so leap-day birthdays can be stored.
    """
    max_day = _MAX_DAYS.get(month)
    return max_day is not None and 1 <= day <= max_day


def date_exists(year: int, month: int, day: int) -> bool:
    """Return True if the exact calendar date exists (29 Feb only in leap years)."""
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def get_month_name(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return "Unknown"


def format_date_display(month: int, day: int) -> str:
    """Render a day of the year the way birthday messages show it, e.g. ``"15 March"``."""
    return f"{day} {get_month_name(month)}"


def calculate_age(birth_year: int, current_year: int) -> int:
    return current_year - birth_year


def current_month_day(now: datetime | None = None) -> Tuple[int, int]:
    """(month, day) of ``now``, defaulting to the current UTC date."""
    now = now or utc_now()
    return now.month, now.day
