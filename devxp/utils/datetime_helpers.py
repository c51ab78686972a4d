"""
Date/time helpers for challenge expiry and time-gated bonuses

The engine keeps every datetime as naive local time. Aware values coming in
from callers are converted with to_naive_local before they are stored or
compared.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional


def now_local() -> datetime:
    """Current local time (naive)"""
    return datetime.now()


def to_naive_local(moment: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive local time; naive values pass through"""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def end_of_day(moment: datetime) -> datetime:
    """Last representable instant of moment's calendar day"""
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def end_of_week(moment: datetime) -> datetime:
    """
    End of the upcoming Sunday

    Always moves forward: called on a Sunday it returns the following Sunday.
    """
    days_since_sunday = (moment.weekday() + 1) % 7
    days_until_sunday = 7 - days_since_sunday
    return end_of_day(moment + timedelta(days=days_until_sunday))


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() >= 5


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days
