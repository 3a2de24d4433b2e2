"""
Date and Period Utilities
Canonical identifiers for days (YYYY-MM-DD), ISO weeks (YYYY-Www) and months (YYYY-MM)
"""

import calendar
import math
from datetime import date, datetime, timedelta
from typing import List, Union

DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """
    Normalize a date, datetime or date key to a calendar ``date``

    Datetimes are truncated to their wall-clock day, no timezone conversion.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_key(value)


def date_key_of(day: DateLike) -> str:
    """Zero-padded ``YYYY-MM-DD`` key of a calendar day."""
    day = to_date(day)
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_date_key(key: str) -> date:
    """Inverse of :func:`date_key_of`."""
    year, month, day = key.split("-")
    return date(int(year), int(month), int(day))


def _week_thursday(day: date) -> date:
    # Monday=1 ... Sunday=7
    day_number = day.isoweekday()
    return day + timedelta(days=4 - day_number)


def iso_week_number_of(day: DateLike) -> int:
    """
    ISO-8601 week number of a day

    The day is shifted to the Thursday of its Monday-based week; the week
    number is then counted from January 1 of that Thursday's year. Late
    December days can land in week 1, early January days in week 52/53.

    Args:
        day: Calendar day (date, datetime or date key)

    Returns:
        Week number in 1..53
    """
    thursday = _week_thursday(to_date(day))
    year_start = date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)


def iso_week_year_of(day: DateLike) -> int:
    """Year that owns the ISO week of ``day`` (the year of its Thursday)."""
    return _week_thursday(to_date(day)).year


def week_id_of(day: DateLike) -> str:
    """
    ``YYYY-Www`` identifier of the ISO week containing ``day``

    The year part is the ISO-week-basis year, so 2024-12-30 maps to
    ``2025-W01`` and 2023-01-01 to ``2022-W52``. This keeps week ids
    consistent with the weekly goal period they resolve to.
    """
    return f"{iso_week_year_of(day)}-W{iso_week_number_of(day):02d}"


def month_id_of(day: DateLike) -> str:
    """``YYYY-MM`` identifier of the month containing ``day``."""
    day = to_date(day)
    return f"{day.year:04d}-{day.month:02d}"


def days_in_month(year: int, month: int) -> List[date]:
    """All calendar days of a month, in order."""
    last_day = calendar.monthrange(year, month)[1]
    return [date(year, month, number) for number in range(1, last_day + 1)]


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def week_of_month(day: DateLike) -> int:
    """Ordinal of the 7-day block of the month ``day`` falls in (1..5)."""
    return (to_date(day).day - 1) // 7 + 1


def is_weekend(day: DateLike) -> bool:
    return to_date(day).weekday() >= 5
