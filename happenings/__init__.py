"""happenings - occurrence expansion, override merge and series grouping.

Turns recurring event templates plus sparse per-date overrides into a
date-keyed timeline and a one-row-per-series view. The engine performs no I/O;
callers pass event and override rows in and get pydantic models back.
"""

__version__ = "0.1.0"

from typing import Optional

from .core.civil_clock import CivilClock
from .domain.series import (
    SERIES_VIEW_MAX_UPCOMING,
    group_events_as_series_view,
    group_series_by_weekday,
    unknown_series_entries,
)
from .domain.timeline import expand_and_group_events
from .models import (
    EventScheduleDescriptor,
    Occurrence,
    OccurrenceOverride,
    OccurrenceStatus,
    SeriesEntry,
)
from .occurrences import EXPANSION_CAPS, ExpansionOptions, compute_next_occurrence
from .overrides import ALLOWED_OVERRIDE_FIELDS, apply_occurrence_override, build_override_map
from .recurrence import parse_recurrence
from .recurrence_summary import summarize_recurrence

__all__ = [
    "ALLOWED_OVERRIDE_FIELDS",
    "EXPANSION_CAPS",
    "SERIES_VIEW_MAX_UPCOMING",
    "CivilClock",
    "EventScheduleDescriptor",
    "ExpansionOptions",
    "Occurrence",
    "OccurrenceOverride",
    "OccurrenceStatus",
    "SeriesEntry",
    "apply_occurrence_override",
    "build_override_map",
    "compute_next_occurrence",
    "expand_and_group_events",
    "group_events_as_series_view",
    "group_series_by_weekday",
    "parse_recurrence",
    "summarize_recurrence",
    "unknown_series_entries",
]


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized stderr handler when the root logger has none, so host
    applications that configured logging themselves are left alone. The
    HAPPENINGS_DEBUG environment variable (truthy values: "1", "true", "yes",
    "on") forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("HAPPENINGS_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, only the level colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
