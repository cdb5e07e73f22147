"""
Time utilities - period keys, period arithmetic and duration formatting.

All instants are naive local wall-clock datetimes. Period keys are plain
strings so they can be compared directly and stored in snapshots:

- day key:   ``YYYY-MM-DD``
- week key:  day key of the Sunday that starts the week
- month key: ``YYYY-MM``
"""

import calendar
import datetime
from typing import Tuple, Union

Instant = Union[datetime.datetime, datetime.date]

DAY = "day"
WEEK = "week"
MONTH = "month"


def date_key(instant: Instant) -> str:
    """Local calendar date, zero-padded YYYY-MM-DD"""
    return f"{instant.year:04d}-{instant.month:02d}-{instant.day:02d}"


def start_of_week(instant: Instant) -> datetime.date:
    """Sunday on or before the given instant"""
    day = datetime.date(instant.year, instant.month, instant.day)
    # weekday(): Monday=0 .. Sunday=6, so days since Sunday is (weekday + 1) % 7
    return day - datetime.timedelta(days=(day.weekday() + 1) % 7)


def week_key(instant: Instant) -> str:
    return date_key(start_of_week(instant))


def month_key(instant: Instant) -> str:
    return f"{instant.year:04d}-{instant.month:02d}"


def parse_date_key(key: str) -> datetime.datetime:
    """
    Parse a day key back into an instant at local midnight.

    Also accepts a month key (YYYY-MM), which resolves to the first of the month.
    """
    if len(key) == 7:
        return datetime.datetime.strptime(key, "%Y-%m")
    return datetime.datetime.strptime(key, "%Y-%m-%d")


def period_key(instant: Instant, kind: str) -> str:
    """Key of the day/week/month period containing the instant"""
    if kind == DAY:
        return date_key(instant)
    if kind == WEEK:
        return week_key(instant)
    if kind == MONTH:
        return month_key(instant)
    raise ValueError(f"Unknown period kind: {kind}")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(instant: Instant, months: int) -> Instant:
    """
    Move an instant by whole months, keeping the time of day.

    The day of month is clamped to the length of the target month,
    so March 31st minus one month is February 28th (or 29th).
    """
    index = instant.year * 12 + (instant.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(instant.day, days_in_month(year, month))
    return instant.replace(year=year, month=month, day=day)


def shift_period(instant: Instant, kind: str, steps: int = 1) -> Instant:
    """
    Shift an instant by a number of periods.

    Day moves by one day, week by seven days, month by one calendar month.
    Negative steps move backwards.
    """
    if kind == DAY:
        return instant + datetime.timedelta(days=steps)
    if kind == WEEK:
        return instant + datetime.timedelta(days=7 * steps)
    if kind == MONTH:
        return add_months(instant, steps)
    raise ValueError(f"Unknown period kind: {kind}")


def format_duration(seconds: int) -> str:
    """Format seconds as '1h 5m' or '5m'. Seconds are never shown."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def format_clock(seconds: int) -> str:
    """Format seconds as HH:MM:SS (hours are not wrapped at 24)"""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_time_of_day(instant: datetime.datetime) -> str:
    """12-hour clock with two-digit hour, e.g. '09:05 AM'"""
    return instant.strftime("%I:%M %p")


def parse_clock(value: str) -> Tuple[int, int]:
    """
    Parse an 'HH:MM' string into (hour, minute).

    Raises:
        ValueError: if either part is not a number
    """
    hour, minute = value.strip().split(":")[:2]
    return int(hour), int(minute)
