"""Per-occurrence overrides: the override index and the occurrence merger.

An override row cancels or patches exactly one date of a series. Rows are
indexed by the composite key ``"<event_id>:<date_key>"``. The key is
unambiguous even when an event id contains ":" because the date key is always
the last 10 characters and never contains ":" itself.

Merge precedence, lowest to highest:

1. base event fields
2. legacy override columns (``override_start_time``, ``override_cover_image_url``,
   ``override_notes``), only when non-null
3. ``override_patch`` entries that are in ``ALLOWED_OVERRIDE_FIELDS``; an explicit
   null clears the field, an absent key leaves it alone, and a value the event
   validators cannot coerce is ignored
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from .models import EventScheduleDescriptor, OccurrenceOverride

logger = logging.getLogger(__name__)

OverrideMap = dict[str, OccurrenceOverride]

EventT = TypeVar("EventT", bound=EventScheduleDescriptor)

# Fields an organizer may change for a single date
ALLOWED_OVERRIDE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "start_time",
        "end_time",
        "venue_id",
        "location_mode",
        "custom_location_name",
        "custom_address",
        "custom_city",
        "custom_state",
        "online_url",
        "location_notes",
        "capacity",
        "has_timeslots",
        "total_slots",
        "slot_duration_minutes",
        "is_free",
        "cost_label",
        "signup_url",
        "signup_deadline",
        "age_policy",
        "external_url",
        "categories",
        "cover_image_url",
        "host_notes",
        "is_published",
    }
)

# Fields that define the series itself; only editable on the template
SERIES_IDENTITY_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "event_type",
        "recurrence_rule",
        "day_of_week",
        "event_date",
        "custom_dates",
        "recurrence_end_date",
        "max_occurrences",
        "series_mode",
        "is_dsc_event",
    }
)

# Legacy override column -> event field it replaces
LEGACY_OVERRIDE_COLUMNS: dict[str, str] = {
    "override_start_time": "start_time",
    "override_cover_image_url": "cover_image_url",
    "override_notes": "host_notes",
}


def build_override_key(event_id: str, date_key: str) -> str:
    """Composite lookup key for an (event, date) pair."""
    return f"{event_id}:{date_key}"


def build_override_map(overrides: Optional[Iterable[Any]]) -> OverrideMap:
    """Index override rows by ``event_id:date_key``.

    Later rows win over earlier rows with the same key. Rows that cannot be
    validated (bad date key, missing event id) are logged and dropped.

    Args:
        overrides: OccurrenceOverride instances or raw mappings

    Returns:
        Mapping from composite key to override
    """
    override_map: OverrideMap = {}
    dropped = 0

    for row in overrides or ():
        if isinstance(row, OccurrenceOverride):
            override = row
        else:
            try:
                override = OccurrenceOverride.model_validate(row)
            except ValidationError as e:
                dropped += 1
                logger.warning("Dropping invalid override row: %s", e)
                continue

        key = build_override_key(override.event_id, override.date_key)
        if key in override_map:
            logger.debug("Duplicate override for %s, keeping the later row", key)
        override_map[key] = override

    if dropped:
        logger.warning("Dropped %d invalid override rows", dropped)
    logger.debug("Built override map with %d entries", len(override_map))
    return override_map


def lookup_override(
    override_map: Optional[Mapping[str, OccurrenceOverride]], event_id: str, date_key: str
) -> Optional[OccurrenceOverride]:
    """Exact-match lookup; a missing map behaves as empty."""
    if not override_map:
        return None
    return override_map.get(build_override_key(event_id, date_key))


def filter_override_patch(patch: Any) -> dict[str, Any]:
    """Keep only allowlisted keys of an override patch.

    Non-mapping patches (None, lists, strings) yield an empty dict. Dropped keys
    are logged at debug level and never raise.
    """
    if not isinstance(patch, Mapping):
        if patch is not None:
            logger.debug("Ignoring non-object override_patch of type %s", type(patch).__name__)
        return {}

    allowed = {}
    for key, value in patch.items():
        if key in ALLOWED_OVERRIDE_FIELDS:
            allowed[key] = value
        else:
            logger.debug("Dropping override_patch key outside allowlist: %r", key)
    return allowed


def apply_occurrence_override(base_event: EventT, override: Optional[OccurrenceOverride]) -> EventT:
    """Compute the effective event for one occurrence.

    Always returns a new object; ``base_event`` is never mutated. With no
    override the result is value-equal to ``base_event``. The override status is
    not a field change and is ignored here.

    Args:
        base_event: Series template
        override: Override row for this date, if any

    Returns:
        Effective event of the same type as ``base_event``
    """
    merged = base_event.model_dump()
    patch: dict[str, Any] = {}

    if override is not None:
        for column, field_name in LEGACY_OVERRIDE_COLUMNS.items():
            value = getattr(override, column)
            if value is not None:
                merged[field_name] = value

        patch = filter_override_patch(override.override_patch)

    prior = dict(merged)
    merged.update(patch)
    effective = type(base_event).model_validate(merged)

    # Only an explicit null clears a field; a value the validators reduce to
    # None keeps whatever the field held before the patch
    uncoercible = [
        key for key, value in patch.items() if value is not None and effective.field_value(key) is None
    ]
    if not uncoercible:
        return effective

    logger.debug(
        "Ignoring override_patch values that could not be coerced for event %s: %s",
        base_event.id,
        uncoercible,
    )
    for key in uncoercible:
        merged[key] = prior.get(key)
    return type(base_event).model_validate(merged)
