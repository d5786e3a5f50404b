"""Data models for occurrence expansion - boundary types and results."""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Iterable
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core.date_keys import coerce_date_key, is_valid_date_key

logger = logging.getLogger(__name__)


def _coerce_time(value: Any) -> Optional[str]:
    if isinstance(value, datetime.time):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip() or None
    return None


class OccurrenceStatus(str, Enum):
    """Per-occurrence status carried by an override row."""

    NORMAL = "normal"
    CANCELLED = "cancelled"


class EventScheduleDescriptor(BaseModel):
    """The shape the engine needs from an event row.

    Only the scheduling columns are declared. Every other column of the row
    (title, venue fields, categories, ...) is kept as an extra field so it can
    be carried into occurrences and patched per occurrence.

    Validators normalize rather than reject: an unparseable date becomes None,
    ``custom_dates`` is filtered, sorted and de-duplicated. Only a missing ``id``
    makes a row invalid.
    """

    id: str = Field(..., description="Stable event identifier (UUID)")
    event_date: Optional[str] = Field(
        default=None, description="Single date for one-time events, series start otherwise"
    )
    day_of_week: Optional[str] = Field(default=None, description="Weekday name, e.g. 'Thursday'")
    recurrence_rule: Optional[str] = Field(default=None, description="Recurrence expression")
    custom_dates: list[str] = Field(default_factory=list, description="Explicit date keys")
    recurrence_end_date: Optional[str] = Field(default=None, description="Last date of the series")
    max_occurrences: Optional[int] = Field(default=None, description="Series length cap")
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if isinstance(v, (int, str, uuid.UUID)) and not isinstance(v, bool):
            return str(v).strip() or None
        return v

    @field_validator("event_date", "recurrence_end_date", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> Optional[str]:
        return coerce_date_key(v)

    @field_validator("day_of_week", "recurrence_rule", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        if isinstance(v, str):
            return v.strip() or None
        return None

    @field_validator("custom_dates", mode="before")
    @classmethod
    def _coerce_custom_dates(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple, set, frozenset)):
            return []
        keys = {coerce_date_key(item) for item in v}
        keys.discard(None)
        return sorted(keys)  # type: ignore[arg-type]

    @field_validator("max_occurrences", mode="before")
    @classmethod
    def _coerce_max_occurrences(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool):
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v.isdigit():
                return None
            v = int(v)
        if isinstance(v, int) and v > 0:
            return v
        return None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _coerce_times(cls, v: Any) -> Optional[str]:
        return _coerce_time(v)

    def field_value(self, name: str) -> Any:
        """Read a declared or extra column by name (None when absent)."""
        if name in type(self).model_fields:
            return getattr(self, name)
        return (self.model_extra or {}).get(name)


class OccurrenceOverride(BaseModel):
    """A per-occurrence exception row, keyed by (event_id, date_key)."""

    event_id: str
    date_key: str
    status: OccurrenceStatus = OccurrenceStatus.NORMAL

    # Legacy single-purpose columns, applied only when non-null
    override_start_time: Optional[str] = None
    override_cover_image_url: Optional[str] = None
    override_notes: Optional[str] = None

    # Open field map; filtered against the allowlist at merge time
    override_patch: Optional[Any] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("event_id", mode="before")
    @classmethod
    def _coerce_event_id(cls, v: Any) -> Any:
        if isinstance(v, (int, str, uuid.UUID)) and not isinstance(v, bool):
            return str(v).strip() or None
        return v

    @field_validator("date_key", mode="before")
    @classmethod
    def _validate_date_key(cls, v: Any) -> str:
        if isinstance(v, datetime.date):
            return coerce_date_key(v)  # type: ignore[return-value]
        if isinstance(v, str) and is_valid_date_key(v.strip()):
            return v.strip()
        raise ValueError(f"date_key must be YYYY-MM-DD, got {v!r}")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> OccurrenceStatus:
        if isinstance(v, OccurrenceStatus):
            return v
        if isinstance(v, str) and v.strip().lower() == OccurrenceStatus.CANCELLED.value:
            return OccurrenceStatus.CANCELLED
        return OccurrenceStatus.NORMAL

    @field_validator("override_start_time", mode="before")
    @classmethod
    def _coerce_override_time(cls, v: Any) -> Optional[str]:
        return _coerce_time(v)

    @field_validator("override_cover_image_url", "override_notes", mode="before")
    @classmethod
    def _coerce_override_text(cls, v: Any) -> Optional[str]:
        # A mistyped legacy column is dropped; it never rejects the row
        if isinstance(v, str):
            return v.strip() or None
        return None

    @property
    def is_cancelled(self) -> bool:
        return self.status == OccurrenceStatus.CANCELLED


class Occurrence(BaseModel):
    """One concrete calendar instance of an event.

    ``event`` is the effective event for this date, with the override (if any)
    already merged in.
    """

    event: EventScheduleDescriptor
    date_key: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_cancelled: bool = False
    override: Optional[OccurrenceOverride] = None


class NextOccurrence(BaseModel):
    """First occurrence on or after today."""

    date: Optional[str] = None
    is_today: bool = False
    is_tomorrow: bool = False
    is_confident: bool = False


class SeriesEntry(BaseModel):
    """One row of the series view: a recurring template and its upcoming dates."""

    event: EventScheduleDescriptor
    next_occurrence: NextOccurrence
    upcoming_occurrences: list[Occurrence] = Field(default_factory=list)
    total_upcoming_count: int = 0
    recurrence_summary: str = ""
    is_one_time: bool = False


class ExpansionMetrics(BaseModel):
    """Counters returned alongside expansion results."""

    events_processed: int = 0
    events_skipped: int = 0
    events_rejected: int = 0
    total_occurrences: int = 0
    cancelled_count: int = 0
    was_capped: bool = False


class TimelineResult(BaseModel):
    """Calendar/timeline view: active occurrences by date, cancellations apart."""

    grouped_events: dict[str, list[Occurrence]] = Field(default_factory=dict)
    cancelled_occurrences: list[Occurrence] = Field(default_factory=list)
    unknown_events: list[EventScheduleDescriptor] = Field(default_factory=list)
    metrics: ExpansionMetrics = Field(default_factory=ExpansionMetrics)


class SeriesViewResult(BaseModel):
    """Series view: one entry per event sorted by next occurrence."""

    series: list[SeriesEntry] = Field(default_factory=list)
    unknown_events: list[EventScheduleDescriptor] = Field(default_factory=list)
    metrics: ExpansionMetrics = Field(default_factory=ExpansionMetrics)


def coerce_events(rows: Iterable[Any]) -> tuple[list[EventScheduleDescriptor], int]:
    """Convert raw event rows into descriptors.

    Rows that are already descriptors pass through untouched. Rows that cannot
    be validated (missing id, not a mapping) are logged and counted.

    Returns:
        (events, rejected_count)
    """
    events: list[EventScheduleDescriptor] = []
    rejected = 0
    for row in rows or ():
        if isinstance(row, EventScheduleDescriptor):
            events.append(row)
            continue
        try:
            events.append(EventScheduleDescriptor.model_validate(row))
        except ValidationError as e:
            rejected += 1
            logger.warning("Rejected event row without a usable schedule identity: %s", e)
    return events, rejected
