"""Timeline grouping: occurrences keyed by date for calendar and list views.

Cancelled occurrences are separated from the date map into their own list so a
calendar can hide them behind a toggle. The series view keeps them inline
instead; see ``happenings.domain.series``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

from ..core.civil_clock import CivilClock, get_default_clock
from ..models import ExpansionMetrics, Occurrence, TimelineResult, coerce_events
from ..occurrences import ExpansionOptions, expand_occurrences_for_event, occurrence_sort_key

logger = logging.getLogger(__name__)


def expand_and_group_events(
    events: Iterable[Any],
    options: Optional[ExpansionOptions] = None,
    *,
    clock: Optional[CivilClock] = None,
) -> TimelineResult:
    """Expand events over a window and group the occurrences by date.

    Args:
        events: Event descriptors or raw event rows
        options: Window, caps and override map (defaults when omitted)
        clock: Civil clock used to default the window start to today

    Returns:
        TimelineResult with ``grouped_events`` in ascending date order (input
        event order within a date), ``cancelled_occurrences`` sorted by date,
        ``unknown_events`` and metrics
    """
    options = options or ExpansionOptions()
    clock = clock or get_default_clock()

    descriptors, rejected = coerce_events(events)
    metrics = ExpansionMetrics(events_rejected=rejected)

    window = options.resolve_window(clock.today())
    if window is None:
        metrics.events_skipped = len(descriptors)
        return TimelineResult(metrics=metrics)
    start_key, end_key = window

    to_process = descriptors
    if options.max_events is not None and len(descriptors) > options.max_events:
        to_process = descriptors[: options.max_events]
        metrics.events_skipped = len(descriptors) - len(to_process)
        metrics.was_capped = True
        logger.info(
            "Timeline capped at %d of %d events", len(to_process), len(descriptors)
        )

    grouped: dict[str, list[Occurrence]] = {}
    cancelled: list[Occurrence] = []
    unknown = []

    total_cap = options.max_total_occurrences
    for index, event in enumerate(to_process):
        if total_cap is not None and metrics.total_occurrences >= total_cap:
            metrics.was_capped = True
            metrics.events_skipped += len(to_process) - index
            logger.info(
                "Timeline hit %d total occurrences, skipping %d events",
                total_cap,
                len(to_process) - index,
            )
            break

        metrics.events_processed += 1
        expansion = expand_occurrences_for_event(event, start_key, end_key, options.max_occurrences)

        if expansion.is_unknown:
            unknown.append(event)
            continue
        if expansion.was_capped:
            metrics.was_capped = True

        if total_cap is not None:
            remaining = total_cap - metrics.total_occurrences
            if len(expansion.date_keys) > remaining:
                expansion.date_keys = expansion.date_keys[:remaining]
                metrics.was_capped = True

        for occurrence in expansion.to_occurrences(options.override_map):
            metrics.total_occurrences += 1
            if occurrence.is_cancelled:
                metrics.cancelled_count += 1
                cancelled.append(occurrence)
            else:
                grouped.setdefault(occurrence.date_key, []).append(occurrence)

    logger.debug(
        "Timeline %s..%s: %d events, %d occurrences, %d cancelled, %d unknown",
        start_key,
        end_key,
        metrics.events_processed,
        metrics.total_occurrences,
        metrics.cancelled_count,
        len(unknown),
    )

    return TimelineResult(
        grouped_events={key: grouped[key] for key in sorted(grouped)},
        cancelled_occurrences=sorted(cancelled, key=occurrence_sort_key),
        unknown_events=unknown,
        metrics=metrics,
    )
