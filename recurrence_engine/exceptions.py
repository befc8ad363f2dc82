"""Exception hierarchy for the recurrence engine.

The tolerant public operations (``decode``, ``expand``, ``describe``,
``clamp_until``) never raise these; they absorb failures and return
"no data" instead. The exceptions surface only from the strict helpers that
callers use to validate input before persisting it.
"""


class RecurrenceEngineError(Exception):
    """Base exception for all recurrence engine errors."""


class RuleParseError(RecurrenceEngineError):
    """A rule string could not be parsed strictly.

    Raised when:
    - FREQ is missing or not one of DAILY/WEEKLY/MONTHLY/YEARLY
    - A numeric token (INTERVAL, COUNT, BYMONTHDAY, BYSETPOS, BYMONTH) is malformed
    - A weekday code is unknown
    - UNTIL is not in basic UTC format
    - Decoded values violate the RecurrenceSpec invariants
    """


class ExpansionError(RecurrenceEngineError):
    """Calendar arithmetic failed while expanding a series.

    Raised inside the expander and caught at its boundary, where the
    failure is logged and an empty occurrence list is returned.
    """


class SeriesEditError(RecurrenceEngineError):
    """A series edit was requested on something that is not a recurring series."""


class ConfigError(RecurrenceEngineError, ValueError):
    """Configuration file is present but unusable."""
