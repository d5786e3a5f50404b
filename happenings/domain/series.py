"""Series view: one row per event, next occurrence first.

Unlike the timeline, cancelled dates stay in ``upcoming_occurrences`` with
``is_cancelled=True`` so the row shows the gap.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from ..core.civil_clock import CivilClock, get_default_clock
from ..core.date_keys import add_days, weekday_index, weekday_name, weekday_of
from ..models import (
    EventScheduleDescriptor,
    ExpansionMetrics,
    NextOccurrence,
    SeriesEntry,
    SeriesViewResult,
    coerce_events,
)
from ..occurrences import ExpansionOptions, compute_next_occurrence, expand_occurrences_for_event
from ..recurrence import OneTime, parse_recurrence
from ..recurrence_summary import ONE_TIME_LABEL, UNKNOWN_LABEL, summarize_pattern

logger = logging.getLogger(__name__)

# Preview length per row; rows render a handful of date pills plus "+N more"
SERIES_VIEW_MAX_UPCOMING = 12


def group_events_as_series_view(
    events: Iterable[Any],
    options: Optional[ExpansionOptions] = None,
    *,
    clock: Optional[CivilClock] = None,
) -> SeriesViewResult:
    """Build one series entry per event, sorted by next occurrence.

    The window defaults to today + 90 days and never starts before today; a
    window that ended before today previews ``window_days`` from today instead.
    The window bounds only the preview, ``next_occurrence`` looks ahead on its own.
    Events with no confident next occurrence go to ``unknown_events``.

    Args:
        events: Event descriptors or raw event rows
        options: Window, ``max_events`` and override map (defaults when omitted)
        clock: Civil clock that defines "today"

    Returns:
        SeriesViewResult
    """
    options = options or ExpansionOptions()
    clock = clock or get_default_clock()
    today_key = clock.today()

    descriptors, rejected = coerce_events(events)
    metrics = ExpansionMetrics(events_rejected=rejected)

    window = options.resolve_window(today_key)
    if window is None:
        metrics.events_skipped = len(descriptors)
        return SeriesViewResult(metrics=metrics)
    start_key, end_key = window
    start_key = max(start_key, today_key)
    if end_key < start_key:
        logger.debug("Series window ended %s, before today %s; previewing from today", end_key, today_key)
        end_key = add_days(start_key, options.window_days)

    to_process = descriptors
    if options.max_events is not None and len(descriptors) > options.max_events:
        to_process = descriptors[: options.max_events]
        metrics.events_skipped = len(descriptors) - len(to_process)
        metrics.was_capped = True
        logger.info("Series view capped at %d of %d events", len(to_process), len(descriptors))

    series: list[SeriesEntry] = []
    unknown: list[EventScheduleDescriptor] = []

    for event in to_process:
        metrics.events_processed += 1
        pattern = parse_recurrence(event)

        next_occurrence = compute_next_occurrence(event, today_key, pattern=pattern)
        if not next_occurrence.is_confident:
            unknown.append(event)
            continue

        expansion = expand_occurrences_for_event(
            event, start_key, end_key, max_occurrences=None, pattern=pattern
        )
        if expansion.was_capped:
            metrics.was_capped = True

        occurrences = expansion.to_occurrences(options.override_map)
        cancelled_count = sum(1 for occurrence in occurrences if occurrence.is_cancelled)
        metrics.total_occurrences += len(occurrences)
        metrics.cancelled_count += cancelled_count

        series.append(
            SeriesEntry(
                event=event,
                next_occurrence=next_occurrence,
                upcoming_occurrences=occurrences[:SERIES_VIEW_MAX_UPCOMING],
                total_upcoming_count=len(occurrences),
                recurrence_summary=summarize_pattern(pattern),
                is_one_time=isinstance(pattern, OneTime),
            )
        )

    # Stable: events sharing a next date keep input order
    series.sort(key=lambda entry: entry.next_occurrence.date or "")

    logger.debug(
        "Series view from %s: %d series, %d unknown", today_key, len(series), len(unknown)
    )
    return SeriesViewResult(series=series, unknown_events=unknown, metrics=metrics)


def group_series_by_weekday(
    series: Sequence[SeriesEntry], today_key: str
) -> list[tuple[str, list[SeriesEntry]]]:
    """Group series entries by their ``day_of_week`` for a day-by-day listing.

    Groups are ordered by how many days away the weekday is from today, so
    today's weekday comes first. Entries without a recognizable weekday are
    collected in a trailing "One-time" group. Within a group, entries keep the
    order of ``series``.

    Returns:
        List of (label, entries) pairs, label being a weekday name or "One-time"
    """
    today_index = weekday_of(today_key)
    groups: dict[Optional[int], list[SeriesEntry]] = {}

    for entry in series:
        groups.setdefault(weekday_index(entry.event.day_of_week), []).append(entry)

    def _offset(day: Optional[int]) -> int:
        if day is None:
            return 7
        return (day - today_index) % 7

    return [
        (weekday_name(day) if day is not None else ONE_TIME_LABEL, groups[day])
        for day in sorted(groups, key=_offset)
    ]


def unknown_series_entries(unknown_events: Iterable[EventScheduleDescriptor]) -> list[SeriesEntry]:
    """Placeholder series entries for events whose schedule could not be resolved."""
    return [
        SeriesEntry(
            event=event,
            next_occurrence=NextOccurrence(),
            upcoming_occurrences=[],
            total_upcoming_count=0,
            recurrence_summary=UNKNOWN_LABEL,
            is_one_time=True,
        )
        for event in unknown_events
    ]
