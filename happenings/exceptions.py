"""Exception hierarchy for the happenings occurrence engine.

Helpers raise these; the public engine operations catch them and degrade to a
well-defined subset of output instead of propagating them to callers.
"""


class HappeningsError(Exception):
    """Base exception for all happenings errors."""


class InvalidDateKeyError(HappeningsError, ValueError):
    """A value is not a real calendar date in strict YYYY-MM-DD form."""


class InvalidTimezoneError(HappeningsError, ValueError):
    """A civil timezone name could not be resolved by zoneinfo."""


class RecurrenceParseError(HappeningsError):
    """A recurrence rule string could not be parsed.

    Raised when:
    - An RRULE string is empty or has no FREQ component
    - INTERVAL, COUNT or UNTIL values are malformed
    - A legacy ordinal expression contains unrecognized words
    """
