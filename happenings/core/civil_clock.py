"""Civil clock for happenings.

"Today" is always computed in one fixed civil timezone (America/Denver by
default), never in UTC and never in the host's local zone, so listings do not
flip to the next day at 5pm local time on a UTC server.
"""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import Callable, Optional

from happenings.core.date_keys import add_days, is_valid_date_key, to_date_key
from happenings.exceptions import InvalidDateKeyError, InvalidTimezoneError

logger = logging.getLogger(__name__)

DEFAULT_CIVIL_TIMEZONE = "America/Denver"

CIVIL_TIMEZONE_ENV = "HAPPENINGS_CIVIL_TIMEZONE"
TEST_TIME_ENV = "HAPPENINGS_TEST_TIME"


def get_civil_timezone(fallback: str = DEFAULT_CIVIL_TIMEZONE) -> str:
    """Get the configured civil timezone with validation.

    Checks the HAPPENINGS_CIVIL_TIMEZONE environment variable first, then falls
    back to ``fallback``. An invalid configured zone is logged and replaced by
    the fallback.

    Returns:
        Valid IANA timezone string
    """
    timezone = os.environ.get(CIVIL_TIMEZONE_ENV, fallback)
    try:
        zoneinfo.ZoneInfo(timezone)
        return timezone
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid civil timezone %r, falling back to %r", timezone, fallback)
        return fallback


class TimeProvider:
    """Provides current UTC time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the HAPPENINGS_TEST_TIME environment
        variable (ISO 8601, e.g. "2026-01-10T12:00:00-07:00"). Naive values are
        taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(datetime.timezone.utc)


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


class CivilClock:
    """Resolves "today" as a date key in a fixed civil timezone.

    The clock is a capability handed to the engine. Tests and callers that need
    deterministic output pass ``CivilClock.fixed("2026-01-10")`` or their own
    ``now`` callable instead of patching the system clock.
    """

    def __init__(
        self,
        timezone: Optional[str] = None,
        now: Optional[Callable[[], datetime.datetime]] = None,
    ):
        """Initialize the clock.

        Args:
            timezone: IANA zone name; defaults to the configured civil timezone
            now: Callable returning the current instant; naive results are UTC

        Raises:
            InvalidTimezoneError: If an explicit timezone cannot be resolved
        """
        self.timezone = timezone or get_civil_timezone()
        try:
            self._tz = zoneinfo.ZoneInfo(self.timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidTimezoneError(f"Unknown civil timezone: {self.timezone!r}") from e
        self._now = now or now_utc
        self._fixed_today: Optional[str] = None

    @classmethod
    def fixed(cls, today_key: str, timezone: Optional[str] = None) -> CivilClock:
        """Build a clock whose today() always returns ``today_key``.

        Raises:
            InvalidDateKeyError: If today_key is not a valid date key
        """
        if not is_valid_date_key(today_key):
            raise InvalidDateKeyError(f"Invalid date key {today_key!r}; expected YYYY-MM-DD")
        clock = cls(timezone=timezone or DEFAULT_CIVIL_TIMEZONE)
        clock._fixed_today = today_key
        return clock

    def now(self) -> datetime.datetime:
        """Current instant expressed in the civil timezone."""
        current = self._now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=datetime.timezone.utc)
        return current.astimezone(self._tz)

    def today(self) -> str:
        """Today's date key in the civil timezone."""
        if self._fixed_today is not None:
            return self._fixed_today
        return to_date_key(self.now())

    def tomorrow(self) -> str:
        """Tomorrow's date key in the civil timezone."""
        return add_days(self.today(), 1)

    def __repr__(self) -> str:
        if self._fixed_today is not None:
            return f"CivilClock(timezone={self.timezone!r}, fixed={self._fixed_today!r})"
        return f"CivilClock(timezone={self.timezone!r})"


def get_default_clock() -> CivilClock:
    """Clock in the configured civil timezone reading the (overridable) wall clock."""
    return CivilClock()


def today_key() -> str:
    """Today's date key in the configured civil timezone (convenience function)."""
    return get_default_clock().today()
