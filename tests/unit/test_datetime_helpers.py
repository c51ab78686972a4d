"""Unit tests for date/time helpers"""
from datetime import date, datetime, timezone

import pytest

from devxp.utils.datetime_helpers import days_between, end_of_day, end_of_week, is_weekend


def test_end_of_day():
    assert end_of_day(datetime(2024, 1, 10, 8, 30)) == datetime(2024, 1, 10, 23, 59, 59, 999999)


def test_end_of_day_keeps_timezone():
    moment = datetime(2024, 1, 10, 8, 30, tzinfo=timezone.utc)
    assert end_of_day(moment).tzinfo is timezone.utc


@pytest.mark.parametrize("moment,expected_day", [
    (datetime(2024, 1, 8, 9, 0), 14),    # Monday
    (datetime(2024, 1, 10, 9, 0), 14),   # Wednesday
    (datetime(2024, 1, 13, 23, 0), 14),  # Saturday
    (datetime(2024, 1, 14, 9, 0), 21),   # Sunday rolls to the next week
])
def test_end_of_week(moment, expected_day):
    assert end_of_week(moment) == datetime(2024, 1, expected_day, 23, 59, 59, 999999)


def test_is_weekend():
    assert is_weekend(datetime(2024, 1, 6)) is True
    assert is_weekend(datetime(2024, 1, 7)) is True
    assert is_weekend(datetime(2024, 1, 8)) is False


def test_days_between():
    assert days_between(date(2024, 1, 1), date(2024, 1, 8)) == 7
