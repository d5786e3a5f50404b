"""Recurrence pattern interpreter.

Turns the loosely-typed scheduling columns of an event into one of a few
frozen pattern variants, once, and expands a pattern into date keys over an
inclusive window using ``dateutil.rrule``.

Accepted rule expressions:

- no rule: one-time when ``event_date`` is set, weekly when only ``day_of_week`` is
- ``weekly``, ``biweekly`` / ``every other week``
- ordinal-monthly: ``2nd``, ``last friday``, ``1st/3rd``, ``first and third thursday``
- RFC 5545 RRULE text with FREQ=WEEKLY or FREQ=MONTHLY
- ``custom`` together with a non-empty ``custom_dates`` list

Anything else parses to ``Unknown``. Parsing never raises.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from dateutil.rrule import MONTHLY, WEEKLY, rrule, weekday

from .core.date_keys import (
    add_days,
    coerce_date_key,
    is_valid_date_key,
    parse_date_key,
    to_date_key,
    weekday_index,
    weekday_of,
)
from .exceptions import RecurrenceParseError
from .models import EventScheduleDescriptor

logger = logging.getLogger(__name__)

LAST = -1

_ORDINAL_WORDS: dict[str, int] = {
    "1st": 1,
    "first": 1,
    "2nd": 2,
    "second": 2,
    "3rd": 3,
    "third": 3,
    "4th": 4,
    "fourth": 4,
    "5th": 5,
    "fifth": 5,
    "last": LAST,
}

# Words that carry no scheduling information in legacy ordinal expressions
_FILLER_WORDS = frozenset({"and", "of", "the", "month", "monthly", "every", "each", "on", "in"})

_WEEKLY_RULES = frozenset({"weekly", "every week"})
_BIWEEKLY_RULES = frozenset({"biweekly", "bi-weekly", "every other week", "fortnightly"})
_NONE_RULES = frozenset({"none", "one-time", "onetime", "once", "single"})

_LIST_SEPARATORS = re.compile(r"[/&,+]")
_BYDAY_RE = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")


@dataclass(frozen=True)
class OneTime:
    date_key: str


@dataclass(frozen=True)
class Weekly:
    """Every ``interval`` weeks on ``weekday`` (Monday=0).

    ``start_key`` is the series start and fixes the phase when ``interval`` > 1.
    """

    weekday: int
    interval: int = 1
    start_key: Optional[str] = None
    until_key: Optional[str] = None
    count: Optional[int] = None


@dataclass(frozen=True)
class OrdinalMonthly:
    """The Nth (or last, -1) ``weekday`` of every month, for each ordinal."""

    weekday: int
    ordinals: tuple[int, ...]
    start_key: Optional[str] = None
    until_key: Optional[str] = None
    count: Optional[int] = None


@dataclass(frozen=True)
class Custom:
    dates: tuple[str, ...]
    count: Optional[int] = None


@dataclass(frozen=True)
class Unknown:
    reason: str


RecurrencePattern = Union[OneTime, Weekly, OrdinalMonthly, Custom, Unknown]


def sort_ordinals(ordinals: Any) -> tuple[int, ...]:
    """De-duplicate ordinals and order them ascending with ``last`` at the end."""
    return tuple(sorted(set(ordinals), key=lambda n: (n == LAST, n)))


def _parse_until(value: str) -> Optional[str]:
    text = value.strip()
    if len(text) >= 8 and text[:8].isdigit():
        candidate = f"{text[:4]}-{text[4:6]}-{text[6:8]}"
        if is_valid_date_key(candidate):
            return candidate
    return coerce_date_key(text)


def parse_rrule_string(rrule_string: str) -> dict[str, Any]:
    """Parse RRULE text into components.

    Args:
        rrule_string: RRULE string (e.g. "FREQ=MONTHLY;BYDAY=2TH"), with or
            without an "RRULE:" prefix

    Returns:
        Dictionary with ``freq`` and any of ``interval``, ``byday`` (list of
        (ordinal or None, weekday index) pairs), ``bysetpos``, ``until`` (date
        key) and ``count``

    Raises:
        RecurrenceParseError: If the RRULE string is invalid
    """
    if not rrule_string or not rrule_string.strip():
        raise RecurrenceParseError("Empty RRULE string")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[6:]

    try:
        rrule_dict: dict[str, Any] = {}

        for part in text.split(";"):
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            key = key.strip().lower()
            value = value.strip()

            if key == "freq":
                rrule_dict["freq"] = value.upper()
            elif key == "interval":
                rrule_dict["interval"] = int(value)
            elif key == "byday":
                byday = []
                for day in value.split(","):
                    match = _BYDAY_RE.match(day.strip().upper())
                    if not match:
                        raise ValueError(f"Bad BYDAY value {day!r}")
                    ordinal = int(match.group(1)) if match.group(1) else None
                    byday.append((ordinal, weekday_index(match.group(2))))
                rrule_dict["byday"] = byday
            elif key == "bysetpos":
                rrule_dict["bysetpos"] = [int(pos) for pos in value.split(",")]
            elif key == "until":
                until = _parse_until(value)
                if until is None:
                    raise ValueError(f"Bad UNTIL value {value!r}")
                rrule_dict["until"] = until
            elif key == "count":
                rrule_dict["count"] = int(value)
            else:
                rrule_dict[key] = value

        if not rrule_dict.get("freq"):
            raise RecurrenceParseError("RRULE missing required FREQ parameter")

        if rrule_dict.get("interval", 1) < 1 or rrule_dict.get("count", 1) < 1:
            raise ValueError("INTERVAL and COUNT must be positive")

        return rrule_dict

    except (ValueError, AttributeError) as e:
        raise RecurrenceParseError(f"Invalid RRULE format: {rrule_string}") from e


def _looks_like_rrule(rule: str) -> bool:
    upper = rule.upper()
    return upper.startswith("RRULE:") or "FREQ=" in upper


def _min_key(*keys: Optional[str]) -> Optional[str]:
    present = [key for key in keys if key]
    return min(present) if present else None


def _min_count(*counts: Optional[int]) -> Optional[int]:
    present = [count for count in counts if count]
    return min(present) if present else None


class _PatternBuilder:
    """Resolves one event's scheduling columns into a pattern."""

    def __init__(self, event: EventScheduleDescriptor):
        self.event = event
        self.rule = event.recurrence_rule or ""
        self.day_of_week = weekday_index(event.day_of_week)

    def resolve_weekday(self, rule_weekday: Optional[int]) -> Union[int, Unknown]:
        """Weekday from the rule, else day_of_week, else the weekday of event_date."""
        if rule_weekday is not None:
            if self.day_of_week is not None and self.day_of_week != rule_weekday:
                return Unknown(
                    f"rule weekday contradicts day_of_week {self.event.day_of_week!r}"
                )
            return rule_weekday
        if self.day_of_week is not None:
            return self.day_of_week
        if self.event.event_date:
            return weekday_of(self.event.event_date)
        return Unknown("recurring event without a resolvable weekday")

    def weekly(
        self,
        rule_weekday: Optional[int] = None,
        interval: int = 1,
        until: Optional[str] = None,
        count: Optional[int] = None,
    ) -> RecurrencePattern:
        resolved = self.resolve_weekday(rule_weekday)
        if isinstance(resolved, Unknown):
            return resolved
        if interval > 1 and not self.event.event_date:
            return Unknown(f"every {interval} weeks needs an event_date anchor")
        return Weekly(
            weekday=resolved,
            interval=interval,
            start_key=self.event.event_date,
            until_key=_min_key(self.event.recurrence_end_date, until),
            count=_min_count(self.event.max_occurrences, count),
        )

    def ordinal_monthly(
        self,
        ordinals: Any,
        rule_weekday: Optional[int] = None,
        until: Optional[str] = None,
        count: Optional[int] = None,
    ) -> RecurrencePattern:
        resolved = self.resolve_weekday(rule_weekday)
        if isinstance(resolved, Unknown):
            return resolved
        return OrdinalMonthly(
            weekday=resolved,
            ordinals=sort_ordinals(ordinals),
            start_key=self.event.event_date,
            until_key=_min_key(self.event.recurrence_end_date, until),
            count=_min_count(self.event.max_occurrences, count),
        )

    def without_rule(self) -> RecurrencePattern:
        if self.event.event_date:
            return OneTime(self.event.event_date)
        if self.day_of_week is not None:
            return self.weekly()
        return Unknown("no event_date, day_of_week or recurrence_rule")

    def custom(self) -> RecurrencePattern:
        if not self.event.custom_dates:
            return Unknown("custom schedule without custom_dates")
        return Custom(tuple(self.event.custom_dates), count=self.event.max_occurrences)

    def legacy_ordinal(self, lowered: str) -> RecurrencePattern:
        ordinals: list[int] = []
        weekdays: set[int] = set()

        for token in _LIST_SEPARATORS.sub(" ", lowered).split():
            if token in _ORDINAL_WORDS:
                ordinals.append(_ORDINAL_WORDS[token])
            elif weekday_index(token) is not None:
                weekdays.add(weekday_index(token))  # type: ignore[arg-type]
            elif token not in _FILLER_WORDS:
                return Unknown(f"unrecognized recurrence rule {self.rule!r}")

        if not ordinals:
            return Unknown(f"unrecognized recurrence rule {self.rule!r}")
        if len(weekdays) > 1:
            return Unknown(f"several weekdays in ordinal rule {self.rule!r}")
        return self.ordinal_monthly(ordinals, next(iter(weekdays), None))

    def from_rrule(self) -> RecurrencePattern:
        try:
            parts = parse_rrule_string(self.rule)
        except RecurrenceParseError as e:
            logger.debug("Event %s: %s", self.event.id, e)
            return Unknown(str(e))

        byday = parts.get("byday", [])
        weekdays = {day for _, day in byday}
        if len(weekdays) > 1:
            return Unknown("RRULE with several weekdays")
        rule_weekday = next(iter(weekdays), None)
        until = parts.get("until")
        count = parts.get("count")
        interval = parts.get("interval", 1)

        if parts["freq"] == "WEEKLY":
            if any(ordinal is not None for ordinal, _ in byday):
                return Unknown("weekly RRULE with ordinal BYDAY")
            return self.weekly(rule_weekday, interval, until, count)

        if parts["freq"] == "MONTHLY":
            if interval != 1:
                return Unknown("monthly RRULE with INTERVAL other than 1")
            ordinals = [ordinal for ordinal, _ in byday if ordinal is not None]
            if not ordinals and byday:
                ordinals = parts.get("bysetpos", [])
            if not ordinals or any(not (1 <= n <= 5 or n == LAST) for n in ordinals):
                return Unknown("monthly RRULE without a supported BYDAY ordinal")
            return self.ordinal_monthly(ordinals, rule_weekday, until, count)

        return Unknown(f"unsupported RRULE frequency {parts['freq']}")

    def build(self) -> RecurrencePattern:
        lowered = " ".join(self.rule.lower().split())

        if not lowered or lowered in _NONE_RULES:
            return self.without_rule()
        if lowered == "custom":
            return self.custom()
        if _looks_like_rrule(self.rule):
            return self.from_rrule()
        if lowered in _WEEKLY_RULES:
            return self.weekly()
        if lowered in _BIWEEKLY_RULES:
            return self.weekly(interval=2)
        return self.legacy_ordinal(lowered)


def parse_recurrence(event: EventScheduleDescriptor) -> RecurrencePattern:
    """Parse an event's scheduling columns into a recurrence pattern.

    Never raises: unresolvable or contradictory input yields ``Unknown`` with a
    reason suitable for logging.
    """
    pattern = _PatternBuilder(event).build()
    if isinstance(pattern, Unknown):
        logger.debug("Event %s has unknown schedule: %s", event.id, pattern.reason)
    return pattern


def _to_datetime(date_key: str) -> datetime.datetime:
    return datetime.datetime.combine(parse_date_key(date_key), datetime.time())


def _first_on_or_after(date_key: str, target_weekday: int) -> str:
    return add_days(date_key, (target_weekday - weekday_of(date_key)) % 7)


def _expand_rule(
    freq: int,
    byweekday: Any,
    interval: int,
    series_start: Optional[str],
    until_key: Optional[str],
    count: Optional[int],
    start_key: str,
    end_key: str,
) -> list[str]:
    window_end = _min_key(end_key, until_key)
    if window_end is None or window_end < start_key:
        return []

    if count:
        # COUNT is measured from the series start; without one it caps the window
        if series_start:
            rule = rrule(freq, dtstart=_to_datetime(series_start), interval=interval,
                         byweekday=byweekday, count=count)
            return [
                to_date_key(dt)
                for dt in rule.between(_to_datetime(start_key), _to_datetime(window_end), inc=True)
            ]
        return _expand_rule(freq, byweekday, interval, None, until_key, None, start_key, end_key)[:count]

    dtstart = start_key
    if series_start and (interval > 1 or series_start > start_key):
        dtstart = series_start
    rule = rrule(freq, dtstart=_to_datetime(dtstart), interval=interval, byweekday=byweekday,
                 until=_to_datetime(window_end))
    return [
        to_date_key(dt)
        for dt in rule.between(_to_datetime(start_key), _to_datetime(window_end), inc=True)
    ]


def expand_pattern(pattern: RecurrencePattern, start_key: str, end_key: str) -> list[str]:
    """Expand a pattern into date keys within ``[start_key, end_key]``.

    Returns an ascending, de-duplicated list. ``Unknown`` expands to nothing;
    callers check for it before expanding.
    """
    if start_key > end_key:
        return []

    if isinstance(pattern, OneTime):
        return [pattern.date_key] if start_key <= pattern.date_key <= end_key else []

    if isinstance(pattern, Custom):
        dates = sorted(set(pattern.dates))
        if pattern.count:
            dates = dates[: pattern.count]
        return [key for key in dates if start_key <= key <= end_key]

    if isinstance(pattern, Weekly):
        series_start = None
        if pattern.start_key:
            # Phase starts on the first matching weekday on or after the anchor
            series_start = _first_on_or_after(pattern.start_key, pattern.weekday)
        return _expand_rule(
            WEEKLY,
            weekday(pattern.weekday),
            pattern.interval,
            series_start,
            pattern.until_key,
            pattern.count,
            start_key,
            end_key,
        )

    if isinstance(pattern, OrdinalMonthly):
        byweekday = [weekday(pattern.weekday, n) for n in pattern.ordinals]
        return _expand_rule(
            MONTHLY,
            byweekday,
            1,
            pattern.start_key,
            pattern.until_key,
            pattern.count,
            start_key,
            end_key,
        )

    return []


def without_count(pattern: RecurrencePattern) -> RecurrencePattern:
    """The same pattern with its series-length cap removed."""
    if isinstance(pattern, (Weekly, OrdinalMonthly, Custom)) and pattern.count:
        return replace(pattern, count=None)
    return pattern


def is_recurring(pattern: RecurrencePattern) -> bool:
    return isinstance(pattern, (Weekly, OrdinalMonthly, Custom))
