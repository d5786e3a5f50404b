"""Date key helpers for happenings.

A date key is a calendar date serialized as ``YYYY-MM-DD``. Keys are zero-padded
and fixed-width, so plain string comparison orders them chronologically; every
"before/after" check in the engine relies on that.
"""

from __future__ import annotations

import datetime
import re
from typing import Any, Optional

from happenings.exceptions import InvalidDateKeyError

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Python weekday order (Monday=0), which is also dateutil's MO..SU order
WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_WEEKDAY_ALIASES: dict[str, int] = {}
for _index, _name in enumerate(WEEKDAY_NAMES):
    _lower = _name.lower()
    _WEEKDAY_ALIASES[_lower] = _index
    _WEEKDAY_ALIASES[_lower + "s"] = _index  # "mondays"
    _WEEKDAY_ALIASES[_lower[:3]] = _index  # "mon"
    _WEEKDAY_ALIASES[_lower[:2]] = _index  # "mo" (RRULE BYDAY)
_WEEKDAY_ALIASES.update({"tues": 1, "wed": 2, "thur": 3, "thurs": 3})


def is_valid_date_key(value: Any) -> bool:
    """Return True when value is a string naming a real date as YYYY-MM-DD."""
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_key(value: Any) -> datetime.date:
    """Parse a date key into a date.

    Raises:
        InvalidDateKeyError: If value is not a strict YYYY-MM-DD calendar date
    """
    if not is_valid_date_key(value):
        raise InvalidDateKeyError(f"Invalid date key {value!r}; expected YYYY-MM-DD")
    return datetime.date.fromisoformat(value)


def to_date_key(value: datetime.date) -> str:
    """Serialize a date (or the date part of a datetime) as a date key."""
    if isinstance(value, datetime.datetime):
        value = value.date()
    return value.isoformat()


def coerce_date_key(value: Any) -> Optional[str]:
    """Best-effort conversion of a date-like value into a date key.

    Accepts date keys, full ISO strings with a time part, ``date`` and
    ``datetime`` objects. Anything else yields None.
    """
    if isinstance(value, datetime.date):
        return to_date_key(value)
    if isinstance(value, str):
        candidate = value.strip()[:10]
        if is_valid_date_key(candidate):
            return candidate
    return None


def add_days(date_key: str, days: int) -> str:
    """Return the date key ``days`` after ``date_key`` (negative moves back)."""
    return to_date_key(parse_date_key(date_key) + datetime.timedelta(days=days))


def weekday_of(date_key: str) -> int:
    """Weekday index (Monday=0) of a date key."""
    return parse_date_key(date_key).weekday()


def weekday_index(name: Any) -> Optional[int]:
    """Resolve a weekday name or abbreviation to an index (Monday=0).

    Case and surrounding whitespace are ignored. Returns None for anything that
    is not a recognizable weekday.
    """
    if not isinstance(name, str):
        return None
    return _WEEKDAY_ALIASES.get(name.strip().lower())


def weekday_name(index: int) -> str:
    """Full English weekday name for a weekday index (Monday=0)."""
    return WEEKDAY_NAMES[index % 7]


def format_date_group_header(date_key: str, today_key: str) -> str:
    """Human-readable header for a group of occurrences on one date.

    Args:
        date_key: Date of the group
        today_key: Today's date key in the civil timezone

    Returns:
        "Today", "Tomorrow", or a short label such as "Fri, Jan 3"
    """
    if date_key == today_key:
        return "Today"
    if date_key == add_days(today_key, 1):
        return "Tomorrow"
    day = parse_date_key(date_key)
    return f"{WEEKDAY_NAMES[day.weekday()][:3]}, {_MONTH_ABBREVIATIONS[day.month - 1]} {day.day}"
