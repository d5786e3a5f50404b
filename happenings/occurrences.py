"""Occurrence generator: bounded expansion of events into dated occurrences."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .core.date_keys import add_days, is_valid_date_key
from .models import EventScheduleDescriptor, NextOccurrence, Occurrence
from .overrides import OverrideMap, apply_occurrence_override, lookup_override
from .recurrence import (
    RecurrencePattern,
    Unknown,
    expand_pattern,
    parse_recurrence,
    without_count,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpansionCaps:
    """Default bounds on how much work one expansion call may do."""

    max_events: int = 200
    max_total_occurrences: int = 500
    max_per_event: int = 40
    default_window_days: int = 90
    next_occurrence_lookahead_days: int = 400


EXPANSION_CAPS = ExpansionCaps()


@dataclass
class ExpansionOptions:
    """Caller-supplied expansion parameters; every option has a safe default.

    Attributes:
        start_key: First date of the window (default: today)
        end_key: Last date of the window, inclusive (default: start + 90 days)
        max_occurrences: Per-event occurrence cap; None disables it
        max_events: Cap on the number of input events processed; None disables it
        max_total_occurrences: Cap on occurrences across all events; None disables it
        override_map: Output of build_override_map; None behaves as empty
        window_days: Window length used when end_key is omitted
    """

    start_key: Optional[str] = None
    end_key: Optional[str] = None
    max_occurrences: Optional[int] = EXPANSION_CAPS.max_per_event
    max_events: Optional[int] = EXPANSION_CAPS.max_events
    max_total_occurrences: Optional[int] = EXPANSION_CAPS.max_total_occurrences
    override_map: OverrideMap = field(default_factory=dict)
    window_days: int = EXPANSION_CAPS.default_window_days

    def __post_init__(self) -> None:
        if self.override_map is None:
            self.override_map = {}

    def resolve_window(self, today_key: str) -> Optional[tuple[str, str]]:
        """Resolve the inclusive window, or None when it is malformed."""
        start_key = self.start_key or today_key
        if not is_valid_date_key(start_key):
            logger.warning("Invalid window start %r, nothing to expand", start_key)
            return None

        end_key = self.end_key or add_days(start_key, self.window_days)
        if not is_valid_date_key(end_key):
            logger.warning("Invalid window end %r, nothing to expand", end_key)
            return None

        if start_key > end_key:
            logger.warning("Window start %s is after end %s, nothing to expand", start_key, end_key)
            return None

        return start_key, end_key


@dataclass
class EventExpansion:
    """Dates one event produces inside a window."""

    event: EventScheduleDescriptor
    pattern: RecurrencePattern
    date_keys: list[str] = field(default_factory=list)
    was_capped: bool = False

    @property
    def is_unknown(self) -> bool:
        return isinstance(self.pattern, Unknown)

    def to_occurrences(self, override_map: Optional[OverrideMap] = None) -> list[Occurrence]:
        return [build_occurrence(self.event, key, override_map) for key in self.date_keys]


def expand_occurrences_for_event(
    event: EventScheduleDescriptor,
    start_key: str,
    end_key: str,
    max_occurrences: Optional[int] = EXPANSION_CAPS.max_per_event,
    pattern: Optional[RecurrencePattern] = None,
) -> EventExpansion:
    """Expand one event over ``[start_key, end_key]``.

    Args:
        event: Event to expand
        start_key: Window start (valid date key)
        end_key: Window end, inclusive (valid date key)
        max_occurrences: Per-event cap; None or 0 disables it
        pattern: Pre-parsed pattern, parsed from ``event`` when omitted

    Returns:
        EventExpansion; ``was_capped`` is set when the per-event cap or the
        series length (max_occurrences / COUNT) cut dates out of the window
    """
    if pattern is None:
        pattern = parse_recurrence(event)
    if isinstance(pattern, Unknown):
        return EventExpansion(event=event, pattern=pattern)

    date_keys = expand_pattern(pattern, start_key, end_key)
    was_capped = False

    uncounted = without_count(pattern)
    if uncounted is not pattern and len(expand_pattern(uncounted, start_key, end_key)) > len(date_keys):
        logger.debug("Event %s series length cut dates from the window", event.id)
        was_capped = True

    if max_occurrences and len(date_keys) > max_occurrences:
        logger.debug(
            "Event %s capped at %d of %d occurrences", event.id, max_occurrences, len(date_keys)
        )
        date_keys = date_keys[:max_occurrences]
        was_capped = True

    return EventExpansion(event=event, pattern=pattern, date_keys=date_keys, was_capped=was_capped)


def compute_next_occurrence(
    event: EventScheduleDescriptor,
    today_key: str,
    pattern: Optional[RecurrencePattern] = None,
    lookahead_days: int = EXPANSION_CAPS.next_occurrence_lookahead_days,
) -> NextOccurrence:
    """First scheduled date on or after today, ignoring overrides.

    Unknown schedules and series with no remaining date within the lookahead
    return ``date=None`` and ``is_confident=False``.
    """
    if pattern is None:
        pattern = parse_recurrence(event)
    if isinstance(pattern, Unknown):
        return NextOccurrence()

    upcoming = expand_pattern(pattern, today_key, add_days(today_key, lookahead_days))
    if not upcoming:
        return NextOccurrence()

    next_key = upcoming[0]
    return NextOccurrence(
        date=next_key,
        is_today=next_key == today_key,
        is_tomorrow=next_key == add_days(today_key, 1),
        is_confident=True,
    )


def build_occurrence(
    event: EventScheduleDescriptor, date_key: str, override_map: Optional[OverrideMap] = None
) -> Occurrence:
    """Build the occurrence of ``event`` on ``date_key`` with its override merged in."""
    override = lookup_override(override_map, event.id, date_key)
    effective = apply_occurrence_override(event, override)
    return Occurrence(
        event=effective,
        date_key=date_key,
        start_time=effective.start_time,
        end_time=effective.end_time,
        is_cancelled=override.is_cancelled if override is not None else False,
        override=override,
    )


def occurrence_sort_key(occurrence: Occurrence) -> Any:
    return occurrence.date_key
