"""Edits applied to recurring series by the event service.

These helpers cover the recurrence editor and the "this event" /
"this and following" choices offered when a recurring event is edited or
deleted. They only compute new field values; persisting them is up to the
caller.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional

from .datetime_utils import ensure_utc, parse_iso_instant, to_iso_instant
from .exceptions import ExpansionError, SeriesEditError
from .models import (
    EndAfter,
    EndNever,
    EndOn,
    EventRecord,
    Frequency,
    MonthlyDay,
    RecurrenceSpec,
    Series,
    WeeklyDays,
    YearlyDate,
    weekday_of,
)
from .occurrence_expander import generate_starts
from .rule_codec import join_rule, split_rule, token_key
from .series_clamper import clamp_until

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 10

EndKind = Literal["never", "on", "after"]


@dataclass(frozen=True)
class SeriesSplit:
    """Result of splitting a series at an occurrence.

    Attributes:
        original_rule: Clamped rule to store on the original record
        original_exceptions: Exceptions that stay with the original record
        continuation: New record for the split occurrence onwards, or None
            when a counted series has no occurrences left
    """

    original_rule: str
    original_exceptions: list[str]
    continuation: Optional[EventRecord]


def default_spec(frequency: Frequency, anchor: datetime) -> RecurrenceSpec:
    """Preset used when the user first picks a frequency.

    Weekly repeats on the anchor's weekday, monthly on the anchor's day of
    month, yearly on the anchor's month and day.
    """
    anchor = ensure_utc(anchor)
    mode = None
    if frequency == Frequency.WEEKLY:
        mode = WeeklyDays(days=frozenset({weekday_of(anchor)}))
    elif frequency == Frequency.MONTHLY:
        mode = MonthlyDay(day=anchor.day)
    elif frequency == Frequency.YEARLY:
        mode = YearlyDate(month=anchor.month, day=anchor.day)
    return RecurrenceSpec(frequency=frequency, interval=1, mode=mode, end=EndNever())


def with_end_condition(spec: RecurrenceSpec, kind: EndKind, anchor: datetime) -> RecurrenceSpec:
    """Switch the end condition, keeping an existing value of the same kind.

    ``"on"`` defaults to the anchor's day; ``"after"`` defaults to
    DEFAULT_COUNT occurrences.
    """
    if kind == "never":
        end = EndNever()
    elif kind == "on":
        end = spec.end if isinstance(spec.end, EndOn) else EndOn(until=ensure_utc(anchor).date())
    elif kind == "after":
        end = spec.end if isinstance(spec.end, EndAfter) else EndAfter(count=DEFAULT_COUNT)
    else:
        raise ValueError(f"Unknown end condition {kind!r}")
    return spec.model_copy(update={"end": end})


def exclude_occurrence(exceptions: list[str], occurrence_start: datetime) -> list[str]:
    """Cancel a single occurrence ("this event only").

    Returns:
        New exception list with the occurrence's ISO instant appended, unless
        an entry for the same instant is already present
    """
    instant = ensure_utc(occurrence_start)
    existing = set()
    for raw in exceptions:
        try:
            existing.add(parse_iso_instant(raw))
        except ValueError:
            continue
    if instant in existing:
        return list(exceptions)
    return [*exceptions, to_iso_instant(instant)]


def _with_count(rule: str, count: int) -> str:
    """Replace the COUNT token value, keeping everything else verbatim."""
    prefix, tokens = split_rule(rule)
    rewritten = [
        (key, str(count)) if token_key(key) == "COUNT" else (key, value) for key, value in tokens
    ]
    return join_rule(prefix, rewritten)


def split_series(
    record: EventRecord,
    occurrence_start: datetime,
    new_id: Optional[str] = None,
) -> SeriesSplit:
    """Split a series at an occurrence ("this and following").

    The original record is clamped to end before the occurrence. The
    continuation starts at the occurrence with the same duration and rule;
    a COUNT is reduced by the occurrences already consumed before the split.
    Exceptions are partitioned between the two records by instant.

    Args:
        record: Recurring event record
        occurrence_start: Start of the occurrence the user acted on
        new_id: Id for the continuation (random hex when omitted)

    Raises:
        SeriesEditError: If the record has no usable recurrence rule
    """
    series = Series.from_event_record(record)
    spec = series.spec if series is not None else None
    if series is None or spec is None:
        raise SeriesEditError(f"Event {record.id} is not a recurring series")

    cutoff = ensure_utc(occurrence_start)
    clamped = clamp_until(record.recurrence, cutoff)

    before: list[str] = []
    after: list[str] = []
    for raw in record.exceptions:
        try:
            instant = parse_iso_instant(raw)
        except ValueError:
            logger.warning("Dropping malformed exception %r while splitting %s", raw, record.id)
            continue
        (after if instant >= cutoff else before).append(raw)

    continuation_rule = record.recurrence
    if isinstance(spec.end, EndAfter):
        # Canceled occurrences still consume the count
        consumed = 0
        if cutoff > series.anchor_start:
            try:
                consumed = len(
                    generate_starts(
                        spec,
                        series.anchor_start,
                        series.anchor_start,
                        cutoff - timedelta(microseconds=1),
                    )
                )
            except ExpansionError as e:
                raise SeriesEditError(f"Cannot count occurrences of {record.id}: {e}") from e
        remaining = spec.end.count - consumed
        if remaining <= 0:
            logger.info("Series %s has no occurrences left after %s", record.id, cutoff)
            return SeriesSplit(original_rule=clamped, original_exceptions=before, continuation=None)
        continuation_rule = _with_count(record.recurrence, remaining)

    continuation = EventRecord(
        id=new_id or uuid.uuid4().hex,
        start=cutoff,
        end=cutoff + series.duration,
        recurrence=continuation_rule,
        exceptions=after,
    )
    logger.debug(
        "Split series %s at %s into %r and continuation %s (%r)",
        record.id,
        cutoff.isoformat(),
        clamped,
        continuation.id,
        continuation_rule,
    )
    return SeriesSplit(original_rule=clamped, original_exceptions=before, continuation=continuation)
