"""Data models for recurrence rules, series and occurrences."""

import logging
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .datetime_utils import ensure_utc, parse_iso_instant

logger = logging.getLogger(__name__)

# 0=Sunday .. 6=Saturday
Weekday = Annotated[int, Field(ge=0, le=6)]
SetPosition = Literal[-1, 1, 2, 3, 4]

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def weekday_of(dt: datetime) -> int:
    """Return the Sunday-first weekday index (0..6) of a datetime."""
    return (dt.weekday() + 1) % 7


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# Frequency modes


class WeeklyDays(_Frozen):
    """Weekly: repeat on a set of weekdays."""

    kind: Literal["weekly_days"] = "weekly_days"
    days: frozenset[Weekday] = Field(..., min_length=1)


class MonthlyDay(_Frozen):
    """Monthly: repeat on a fixed day of the month."""

    kind: Literal["monthly_day"] = "monthly_day"
    day: int = Field(..., ge=1, le=31)


class MonthlyNthWeekday(_Frozen):
    """Monthly: repeat on the nth (or last, -1) weekday of the month."""

    kind: Literal["monthly_nth_weekday"] = "monthly_nth_weekday"
    position: SetPosition
    weekday: Weekday


class YearlyDate(_Frozen):
    """Yearly: repeat on a fixed month and day."""

    kind: Literal["yearly_date"] = "yearly_date"
    month: int = Field(..., ge=1, le=12)
    day: int = Field(..., ge=1, le=31)


class YearlyNthWeekday(_Frozen):
    """Yearly: repeat on the nth (or last, -1) weekday of a given month."""

    kind: Literal["yearly_nth_weekday"] = "yearly_nth_weekday"
    position: SetPosition
    weekday: Weekday
    month: int = Field(..., ge=1, le=12)


RecurrenceMode = Annotated[
    Union[WeeklyDays, MonthlyDay, MonthlyNthWeekday, YearlyDate, YearlyNthWeekday],
    Field(discriminator="kind"),
]

_MODES_BY_FREQUENCY: dict[Frequency, tuple[type, ...]] = {
    Frequency.DAILY: (),
    Frequency.WEEKLY: (WeeklyDays,),
    Frequency.MONTHLY: (MonthlyDay, MonthlyNthWeekday),
    Frequency.YEARLY: (YearlyDate, YearlyNthWeekday),
}


# End conditions


class EndNever(_Frozen):
    """Series repeats forever."""

    kind: Literal["never"] = "never"


class EndAfter(_Frozen):
    """Series stops after ``count`` occurrences counted from the anchor."""

    kind: Literal["after"] = "after"
    count: int = Field(..., ge=1)


class EndOn(_Frozen):
    """Series stops at an inclusive UTC instant.

    A plain ``date`` means "through the end of that day" and is stored as
    23:59:59 UTC. Datetimes are kept to whole seconds since that is what the
    rule string can carry; the expander treats the instant as inclusive
    through the end of its second.
    """

    kind: Literal["on"] = "on"
    until: datetime

    @field_validator("until", mode="before")
    @classmethod
    def _day_to_end_of_day(cls, value):
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time(23, 59, 59), tzinfo=UTC)
        return value

    @field_validator("until")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value).replace(microsecond=0)

    @property
    def until_date(self) -> date:
        """Calendar day (UTC) the series ends on."""
        return self.until.date()


EndCondition = Annotated[
    Union[EndNever, EndAfter, EndOn],
    Field(discriminator="kind"),
]


class RecurrenceSpec(_Frozen):
    """Structured, decoded form of a recurrence rule.

    ``mode`` is ``None`` when the rule carries no mode-specific tokens; the
    expander then derives the weekday / day of month / month from the anchor.
    """

    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    mode: Optional[RecurrenceMode] = None
    end: EndCondition = Field(default_factory=EndNever)

    @model_validator(mode="after")
    def _check_mode_matches_frequency(self) -> "RecurrenceSpec":
        if self.mode is not None and not isinstance(
            self.mode, _MODES_BY_FREQUENCY[self.frequency]
        ):
            raise ValueError(
                f"{type(self.mode).__name__} is not valid for {self.frequency.value} rules"
            )
        return self

    # Flat accessors, handy for UI forms

    @property
    def days_of_week(self) -> frozenset[int]:
        return self.mode.days if isinstance(self.mode, WeeklyDays) else frozenset()

    @property
    def day_of_month(self) -> Optional[int]:
        return self.mode.day if isinstance(self.mode, MonthlyDay) else None

    @property
    def monthly_set_position(self) -> Optional[MonthlyNthWeekday]:
        return self.mode if isinstance(self.mode, MonthlyNthWeekday) else None

    @property
    def month(self) -> Optional[int]:
        if isinstance(self.mode, (YearlyDate, YearlyNthWeekday)):
            return self.mode.month
        return None

    @property
    def year_day_of_month(self) -> Optional[int]:
        return self.mode.day if isinstance(self.mode, YearlyDate) else None

    @property
    def year_nth_weekday(self) -> Optional[YearlyNthWeekday]:
        return self.mode if isinstance(self.mode, YearlyNthWeekday) else None


class EventRecord(BaseModel):
    """Raw event fields supplied by the calendar service."""

    id: str
    start: datetime
    end: datetime
    recurrence: Optional[str] = None
    exceptions: list[str] = Field(default_factory=list)

    @field_validator("start", "end")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Series(_Frozen):
    """Runtime unit the expander operates on.

    Rebuilt per call from the caller's event fields and never persisted here.
    """

    id: str
    anchor_start: datetime
    anchor_end: datetime
    rule: str
    exceptions: frozenset[datetime] = Field(default_factory=frozenset)

    @field_validator("anchor_start", "anchor_end")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("exceptions")
    @classmethod
    def _exceptions_utc(cls, value: frozenset[datetime]) -> frozenset[datetime]:
        return frozenset(ensure_utc(ex) for ex in value)

    @property
    def duration(self) -> timedelta:
        """Occurrence length; negative anchors collapse to zero."""
        return max(timedelta(0), self.anchor_end - self.anchor_start)

    @property
    def spec(self) -> Optional[RecurrenceSpec]:
        """Decoded rule, or None if the stored string is not a usable rule."""
        from .rule_codec import decode  # noqa: PLC0415

        return decode(self.rule)

    @classmethod
    def from_event_record(cls, record: EventRecord) -> Optional["Series"]:
        """Build a series from an event record, or None if it does not recur."""
        if not record.recurrence:
            return None

        exceptions = set()
        for raw in record.exceptions:
            try:
                exceptions.add(parse_iso_instant(raw))
            except ValueError as e:
                logger.warning("Ignoring malformed exception %r on event %s: %s", raw, record.id, e)
                continue

        return cls(
            id=record.id,
            anchor_start=record.start,
            anchor_end=record.end,
            rule=record.recurrence,
            exceptions=frozenset(exceptions),
        )


class Occurrence(_Frozen):
    """One concrete instance of a series."""

    series_id: str
    start: datetime
    end: datetime

    @property
    def instance_id(self) -> str:
        """Stable key for this instance, e.g. ``evt-1_20240101T090000``."""
        return f"{self.series_id}_{self.start.strftime('%Y%m%dT%H%M%S')}"
