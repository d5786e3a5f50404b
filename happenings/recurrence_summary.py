"""Human-readable recurrence labels ("Every Monday", "2nd Thursday of the month")."""

from __future__ import annotations

from .core.date_keys import weekday_name
from .models import EventScheduleDescriptor
from .recurrence import (
    LAST,
    Custom,
    OneTime,
    OrdinalMonthly,
    RecurrencePattern,
    Weekly,
    parse_recurrence,
)

ONE_TIME_LABEL = "One-time"
CUSTOM_LABEL = "Custom Schedule"
UNKNOWN_LABEL = "Schedule Unknown"

_ORDINAL_LABELS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th", LAST: "last"}


def _join_labels(labels: list[str]) -> str:
    if len(labels) == 1:
        return labels[0]
    return ", ".join(labels[:-1]) + " & " + labels[-1]


def summarize_pattern(pattern: RecurrencePattern) -> str:
    """Label for an already-parsed pattern."""
    if isinstance(pattern, OneTime):
        return ONE_TIME_LABEL

    if isinstance(pattern, Custom):
        return CUSTOM_LABEL

    if isinstance(pattern, Weekly):
        day = weekday_name(pattern.weekday)
        if pattern.interval == 1:
            return f"Every {day}"
        if pattern.interval == 2:
            return f"Every Other {day}"
        return f"Every {pattern.interval} Weeks on {day}"

    if isinstance(pattern, OrdinalMonthly):
        day = weekday_name(pattern.weekday)
        ordinals = _join_labels([_ORDINAL_LABELS[n] for n in pattern.ordinals])
        if len(pattern.ordinals) > 1:
            day += "s"
        label = f"{ordinals} {day} of the month"
        return label[0].upper() + label[1:]

    return UNKNOWN_LABEL


def summarize_recurrence(event: EventScheduleDescriptor) -> str:
    """Label derived purely from the event's scheduling columns."""
    return summarize_pattern(parse_recurrence(event))
