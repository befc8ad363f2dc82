"""Expansion of recurring series into concrete occurrences.

The decoded RecurrenceSpec is translated into a ``dateutil.rrule.rrule`` and
queried over the caller's window. dateutil implements the calendar policies
the stored rules rely on:

- a BYMONTHDAY that does not exist in a month (31 in April, 29 in a common
  February) skips that month rather than clamping to its last day
- COUNT is counted from the anchor, independent of the query window
- weekly interval blocks are aligned to Monday-start weeks
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from dateutil.rrule import DAILY, MO, MONTHLY, WEEKLY, YEARLY, rrule

from .datetime_utils import ensure_utc, window_bound
from .exceptions import ExpansionError
from .models import (
    EndAfter,
    EndOn,
    Frequency,
    MonthlyDay,
    MonthlyNthWeekday,
    Occurrence,
    RecurrenceSpec,
    Series,
    WeeklyDays,
    YearlyDate,
    YearlyNthWeekday,
    weekday_of,
)

logger = logging.getLogger(__name__)

_FREQ_MAP = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

# UNTIL has whole-second precision and covers the whole of its second
_UNTIL_SLACK = timedelta(microseconds=999_999)


def _dateutil_weekday(day: int) -> int:
    """Convert Sunday-first (0=Sunday) to dateutil's Monday-first numbering."""
    return (day + 6) % 7


def build_rrule(spec: RecurrenceSpec, anchor_start: datetime) -> rrule:
    """Translate a spec into a dateutil rrule anchored at ``anchor_start``.

    Args:
        spec: Decoded recurrence spec
        anchor_start: Aware UTC anchor; dateutil drops its microseconds

    Returns:
        Configured rrule instance
    """
    kwargs: dict[str, Any] = {
        "freq": _FREQ_MAP[spec.frequency],
        "dtstart": anchor_start,
        "interval": spec.interval,
        "wkst": MO,
    }

    mode = spec.mode
    if spec.frequency == Frequency.WEEKLY:
        days = mode.days if isinstance(mode, WeeklyDays) else {weekday_of(anchor_start)}
        kwargs["byweekday"] = sorted(_dateutil_weekday(day) for day in days)
    elif isinstance(mode, MonthlyDay):
        kwargs["bymonthday"] = mode.day
    elif isinstance(mode, MonthlyNthWeekday):
        kwargs["byweekday"] = _dateutil_weekday(mode.weekday)
        kwargs["bysetpos"] = mode.position
    elif isinstance(mode, YearlyDate):
        kwargs["bymonth"] = mode.month
        kwargs["bymonthday"] = mode.day
    elif isinstance(mode, YearlyNthWeekday):
        kwargs["bymonth"] = mode.month
        kwargs["byweekday"] = _dateutil_weekday(mode.weekday)
        kwargs["bysetpos"] = mode.position
    # No mode: dateutil falls back to the anchor's day of month / month

    end = spec.end
    if isinstance(end, EndAfter):
        kwargs["count"] = end.count
    elif isinstance(end, EndOn):
        kwargs["until"] = end.until + _UNTIL_SLACK

    return rrule(**kwargs)


def generate_starts(
    spec: RecurrenceSpec,
    anchor_start: datetime,
    window_start: datetime,
    window_end: datetime,
) -> list[datetime]:
    """Return candidate start instants inside ``[window_start, window_end]``.

    Raises:
        ExpansionError: If dateutil fails on the calendar arithmetic
    """
    anchor = ensure_utc(anchor_start)
    # rrule works at whole seconds; shift the window instead of the anchor
    offset = timedelta(microseconds=anchor.microsecond)

    try:
        rule = build_rrule(spec, anchor.replace(microsecond=0))
        raw_starts = rule.between(window_start - offset, window_end - offset, inc=True)
    except (ValueError, TypeError, OverflowError) as e:
        raise ExpansionError(f"Failed to expand rule {spec!r}: {e}") from e

    return [ensure_utc(start) + offset for start in raw_starts]


def expand(
    series: Series,
    window_start: Union[datetime, date],
    window_end: Union[datetime, date],
    exceptions: Optional[Iterable[datetime]] = None,
) -> list[Occurrence]:
    """Expand a series into occurrences within an inclusive window.

    A ``date`` window start means the start of that day and a ``date`` window
    end means the end of that day (UTC). Extra ``exceptions`` are merged with
    the series' own; a candidate is dropped only when its start equals an
    exception instant exactly.

    Args:
        series: Series to expand
        window_start: Inclusive lower bound
        window_end: Inclusive upper bound
        exceptions: Additional canceled occurrence starts

    Returns:
        Occurrences ordered by start. Empty when the rule cannot be decoded,
        the window is empty or inverted, or expansion fails; never raises.
    """
    start_bound = window_bound(window_start)
    end_bound = window_bound(window_end, end_of_day=True)
    if end_bound <= start_bound:
        logger.debug(
            "Empty expansion window for series %s: %s..%s",
            series.id,
            start_bound.isoformat(),
            end_bound.isoformat(),
        )
        return []

    spec = series.spec
    if spec is None:
        logger.debug("Series %s has no usable rule: %r", series.id, series.rule)
        return []

    excluded = set(series.exceptions)
    if exceptions:
        excluded.update(ensure_utc(ex) for ex in exceptions)

    try:
        starts = generate_starts(spec, series.anchor_start, start_bound, end_bound)
    except ExpansionError:
        logger.warning("Expansion failed for series %s", series.id, exc_info=True)
        return []

    duration = series.duration
    occurrences = []
    for start in starts:
        if start in excluded:
            continue
        try:
            end = start + duration
        except OverflowError:
            logger.warning(
                "Occurrence of series %s at %s ends past the supported date range; "
                "stopping expansion there",
                series.id,
                start.isoformat(),
            )
            break
        occurrences.append(Occurrence(series_id=series.id, start=start, end=end))

    logger.debug(
        "Expanded series %s rule=%s window=%s..%s: %d candidates, %d after exceptions",
        series.id,
        series.rule,
        start_bound.isoformat(),
        end_bound.isoformat(),
        len(starts),
        len(occurrences),
    )
    return occurrences
