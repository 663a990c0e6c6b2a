"""
Date formatting and parsing used by every scheduler feature.

Date keys are fixed-width ``YYYY-MM-DD`` strings, so plain string comparison
orders them chronologically.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from scheduler.core.config import settings
from scheduler.core.errors import InvalidInputError

MONTH_VALUE_PATTERN = re.compile(r"^\d{4}-\d{2}$")
DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def pad_two(value: int) -> str:
    return f"{value:02d}"


def _local_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        # Aware datetimes are shown on the user's local calendar day
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def to_date_key(value: date | datetime) -> str:
    """Canonical storage key (``YYYY-MM-DD``) for a calendar day."""
    day = _local_date(value)
    return f"{day.year:04d}-{pad_two(day.month)}-{pad_two(day.day)}"


def to_month_value(value: date | datetime) -> str:
    day = _local_date(value)
    return f"{day.year:04d}-{pad_two(day.month)}"


def today_key(today: Optional[date] = None) -> str:
    return to_date_key(today or date.today())


def is_valid_month_value(value: str) -> bool:
    return isinstance(value, str) and bool(MONTH_VALUE_PATTERN.match(value))


def parse_month_value(value: str, today: Optional[date] = None) -> Tuple[int, int]:
    """Parse ``YYYY-MM``; anything malformed falls back to the current month."""
    today = today or date.today()
    if not is_valid_month_value(value):
        return today.year, today.month

    year_part, month_part = value.split("-")
    year, month = int(year_part), int(month_part)
    if month < 1 or month > 12 or year < 1:
        return today.year, today.month
    return year, month


def month_dates(month_value: str, today: Optional[date] = None) -> List[date]:
    """Every calendar day of the month, ascending."""
    year, month = parse_month_value(month_value, today)
    days_in_month = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, days_in_month + 1)]


def month_date_keys(month_value: str, today: Optional[date] = None) -> List[str]:
    return [to_date_key(day) for day in month_dates(month_value, today)]


def parse_date_key(value: str) -> date:
    if not isinstance(value, str) or not DATE_KEY_PATTERN.match(value):
        raise InvalidInputError(f"Malformed date key: {value!r}")
    year, month, day = (int(part) for part in value.split("-"))
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidInputError(f"Malformed date key: {value!r}") from exc


def is_valid_date_key(value: str) -> bool:
    try:
        parse_date_key(value)
    except InvalidInputError:
        return False
    return True


def is_past_date_key(date_key: str, today_date_key: str) -> bool:
    # Lexicographic compare works because keys are fixed-width
    return date_key < today_date_key


def month_label(dates: Sequence[date]) -> str:
    if not dates:
        return ""
    first = dates[0]
    return f"{MONTH_NAMES[first.month - 1]} {first.year}"


def format_date_key(date_key: str) -> str:
    """Short readable label such as ``Sat, Feb 10``; unparseable keys are returned as-is."""
    try:
        day = parse_date_key(date_key)
    except InvalidInputError:
        return date_key
    return f"{WEEKDAY_LABELS[(day.weekday() + 1) % 7]}, {MONTH_NAMES[day.month - 1][:3]} {day.day}"


def _week_start(first_day_of_week: Optional[str]) -> str:
    return (first_day_of_week or settings.FIRST_DAY_OF_WEEK).lower()


def weekday_labels(first_day_of_week: Optional[str] = None) -> Tuple[str, ...]:
    if _week_start(first_day_of_week) == "monday":
        return WEEKDAY_LABELS[1:] + WEEKDAY_LABELS[:1]
    return WEEKDAY_LABELS


def weekday_offset(day: date, first_day_of_week: Optional[str] = None) -> int:
    """Column of ``day`` in a week row (0 for the first configured weekday)."""
    if _week_start(first_day_of_week) == "monday":
        return day.weekday()
    return (day.weekday() + 1) % 7


def grid_padding(first_offset: int, total_days: int) -> Tuple[int, int]:
    """Blank cells before and after the month so every week row has seven cells."""
    leading = first_offset % 7
    trailing = (7 - ((leading + total_days) % 7)) % 7
    return leading, trailing


def calendar_grid(
    dates: Sequence[date], first_day_of_week: Optional[str] = None
) -> List[Optional[date]]:
    if not dates:
        return []
    leading, trailing = grid_padding(weekday_offset(dates[0], first_day_of_week), len(dates))
    return [None] * leading + list(dates) + [None] * trailing


def year_options(selected_year: int, span: int = 5) -> List[int]:
    return list(range(selected_year - span, selected_year + span + 1))
