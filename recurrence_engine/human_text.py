"""Natural-language summaries of recurrence rules for UI display."""

import logging
from datetime import datetime

from .datetime_utils import ensure_utc
from .models import (
    WEEKDAY_NAMES,
    EndAfter,
    EndOn,
    Frequency,
    MonthlyDay,
    MonthlyNthWeekday,
    RecurrenceSpec,
    WeeklyDays,
    YearlyDate,
    YearlyNthWeekday,
    weekday_of,
)
from .rule_codec import decode

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "Repeats"

MONTH_NAMES = (
    "",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_UNITS = {
    Frequency.DAILY: ("day", "days"),
    Frequency.WEEKLY: ("week", "weeks"),
    Frequency.MONTHLY: ("month", "months"),
    Frequency.YEARLY: ("year", "years"),
}


def _ordinal(n: int) -> str:
    """Convert number to ordinal string (1 -> 1st, 2 -> 2nd, etc.)."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _position_text(position: int) -> str:
    return "last" if position == -1 else _ordinal(position)


def _format_day(dt: datetime) -> str:
    return f"{MONTH_NAMES[dt.month]} {dt.day}, {dt.year}"


def render(spec: RecurrenceSpec, anchor: datetime) -> str:
    """Render a decoded spec, e.g. ``every 2 weeks on Monday, Wednesday``."""
    anchor = ensure_utc(anchor)
    singular, plural = _UNITS[spec.frequency]
    parts = [f"every {singular}" if spec.interval == 1 else f"every {spec.interval} {plural}"]

    mode = spec.mode
    if spec.frequency == Frequency.WEEKLY:
        days = sorted(mode.days) if isinstance(mode, WeeklyDays) else [weekday_of(anchor)]
        parts.append("on " + ", ".join(WEEKDAY_NAMES[day] for day in days))
    elif spec.frequency == Frequency.MONTHLY:
        if isinstance(mode, MonthlyNthWeekday):
            parts.append(
                f"on the {_position_text(mode.position)} {WEEKDAY_NAMES[mode.weekday]}"
            )
        else:
            day = mode.day if isinstance(mode, MonthlyDay) else anchor.day
            parts.append(f"on the {_ordinal(day)}")
    elif spec.frequency == Frequency.YEARLY:
        if isinstance(mode, YearlyNthWeekday):
            parts.append(
                f"on the {_position_text(mode.position)} {WEEKDAY_NAMES[mode.weekday]}"
                f" of {MONTH_NAMES[mode.month]}"
            )
        elif isinstance(mode, YearlyDate):
            parts.append(f"on {MONTH_NAMES[mode.month]} {mode.day}")
        else:
            parts.append(f"on {MONTH_NAMES[anchor.month]} {anchor.day}")

    text = " ".join(parts)

    end = spec.end
    if isinstance(end, EndAfter):
        text += f", {end.count} {'time' if end.count == 1 else 'times'}"
    elif isinstance(end, EndOn):
        text += f" until {_format_day(end.until)}"

    return text


def describe(rule: str, anchor: datetime) -> str:
    """Describe a rule relative to its anchor.

    Display-only: any decode or rendering failure yields ``"Repeats"``.

    Args:
        rule: Stored rule string
        anchor: Series start, used for weekday / day / month defaults

    Returns:
        Sentence such as ``every month on the last Friday until March 3, 2025``
    """
    spec = decode(rule)
    if spec is None:
        logger.debug("Cannot describe undecodable rule %r", rule)
        return FALLBACK_TEXT
    try:
        return render(spec, anchor)
    except Exception:
        logger.debug("Failed to render rule %r", rule, exc_info=True)
        return FALLBACK_TEXT
