from datetime import datetime, timezone

import pytest

from lobbycord.util.date_utils import (
    calculate_age,
    current_month_day,
    date_exists,
    format_date_display,
    get_month_name,
    is_leap_year,
    is_valid_date,
    utc_now,
)


def test_utc_now_is_aware():
    assert utc_now().tzinfo is timezone.utc


@pytest.mark.parametrize("year,expected", [(2000, True), (1900, False), (2024, True), (2023, False)])
def test_is_leap_year(year, expected):
    assert is_leap_year(year) is expected


def test_is_valid_date_accepts_leap_day():
    assert is_valid_date(2, 29)
    assert not is_valid_date(2, 30)
    assert not is_valid_date(4, 31)
    assert not is_valid_date(13, 1)
    assert not is_valid_date(1, 0)


def test_date_exists_checks_the_year():
    assert date_exists(2024, 2, 29)
    assert not date_exists(2023, 2, 29)


def test_month_names_and_display():
    assert get_month_name(3) == "March"
    assert get_month_name(0) == "Unknown"
    assert format_date_display(3, 15) == "15 March"


def test_age_and_current_day():
    assert calculate_age(2000, 2025) == 25
    assert current_month_day(datetime(2025, 7, 4, tzinfo=timezone.utc)) == (7, 4)
