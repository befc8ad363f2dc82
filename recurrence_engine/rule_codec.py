"""Encoding and decoding between RecurrenceSpec and canonical rule strings.

Canonical form::

    RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20250303T235959Z

Tokens are emitted in a fixed order: FREQ, INTERVAL, the mode tokens for the
frequency, then at most one of COUNT / UNTIL. The string is what the calendar
service persists, so the format must stay stable across releases.

``decode`` is tolerant: any token order, optional ``RRULE:`` prefix,
case-insensitive keys, unknown or malformed tokens ignored. It returns None
only when FREQ is missing or unknown. ``parse_rule`` is the strict variant
used to validate user input before it is stored.
"""

import logging
import re
from typing import Optional, Union

from pydantic import ValidationError

from .datetime_utils import format_basic_utc, parse_basic_utc
from .exceptions import RuleParseError
from .models import (
    EndAfter,
    EndNever,
    EndOn,
    Frequency,
    MonthlyDay,
    MonthlyNthWeekday,
    RecurrenceSpec,
    WeeklyDays,
    YearlyDate,
    YearlyNthWeekday,
)

logger = logging.getLogger(__name__)

RULE_PREFIX = "RRULE:"

# Index matches the Sunday-first weekday numbering used by RecurrenceSpec
WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

VALID_SET_POSITIONS = (-1, 1, 2, 3, 4)

_BYDAY_ITEM = re.compile(r"^([+-]?\d{1,2})?([A-Z]{2})$")

Token = tuple[str, Optional[str]]


def split_rule(rule: str) -> tuple[str, list[Token]]:
    """Split a rule string into its prefix and ordered raw tokens.

    Tokens keep their original spelling; a token without ``=`` has a value
    of None. Empty segments are dropped.

    Returns:
        ``(prefix, tokens)`` where prefix is the ``RRULE:`` text as written,
        or an empty string when absent
    """
    body = rule.strip()
    prefix = ""
    if body[: len(RULE_PREFIX)].upper() == RULE_PREFIX:
        prefix, body = body[: len(RULE_PREFIX)], body[len(RULE_PREFIX) :]

    tokens: list[Token] = []
    for part in body.split(";"):
        key, sep, value = part.partition("=")
        if not key.strip():
            continue
        tokens.append((key, value if sep else None))
    return prefix, tokens


def join_rule(prefix: str, tokens: list[Token]) -> str:
    """Inverse of :func:`split_rule`."""
    parts = [key if value is None else f"{key}={value}" for key, value in tokens]
    return prefix + ";".join(parts)


def token_key(key: str) -> str:
    """Normalise a token key for comparison."""
    return key.strip().upper()


def encode(spec: RecurrenceSpec) -> str:
    """Serialize a RecurrenceSpec into its canonical rule string."""
    parts = [f"FREQ={spec.frequency.value}", f"INTERVAL={spec.interval}"]

    mode = spec.mode
    if isinstance(mode, WeeklyDays):
        codes = ",".join(WEEKDAY_CODES[day] for day in sorted(mode.days))
        parts.append(f"BYDAY={codes}")
    elif isinstance(mode, MonthlyDay):
        parts.append(f"BYMONTHDAY={mode.day}")
    elif isinstance(mode, MonthlyNthWeekday):
        parts.append(f"BYDAY={WEEKDAY_CODES[mode.weekday]}")
        parts.append(f"BYSETPOS={mode.position}")
    elif isinstance(mode, YearlyDate):
        parts.append(f"BYMONTH={mode.month}")
        parts.append(f"BYMONTHDAY={mode.day}")
    elif isinstance(mode, YearlyNthWeekday):
        parts.append(f"BYMONTH={mode.month}")
        parts.append(f"BYDAY={WEEKDAY_CODES[mode.weekday]}")
        parts.append(f"BYSETPOS={mode.position}")

    end = spec.end
    if isinstance(end, EndAfter):
        parts.append(f"COUNT={end.count}")
    elif isinstance(end, EndOn):
        parts.append(f"UNTIL={format_basic_utc(end.until)}")

    return RULE_PREFIX + ";".join(parts)


class _RuleReader:
    """Reads typed values out of a token map, strictly or tolerantly.

    In strict mode every problem raises RuleParseError. In tolerant mode the
    offending token is logged and treated as absent.
    """

    def __init__(self, rule: str, values: dict[str, str], strict: bool):
        self.rule = rule
        self.values = values
        self.strict = strict

    def problem(self, message: str) -> None:
        if self.strict:
            raise RuleParseError(f"{message} in rule {self.rule!r}")
        logger.debug("Ignoring %s in rule %r", message, self.rule)

    def integer(
        self, key: str, minimum: Optional[int] = None, maximum: Optional[int] = None
    ) -> Optional[int]:
        raw = self.values.get(key)
        if raw is None:
            return None
        try:
            value = int(raw)
        except ValueError:
            self.problem(f"malformed {key}={raw!r}")
            return None
        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            self.problem(f"out of range {key}={value}")
            return None
        return value

    def set_position(self) -> Optional[int]:
        position = self.integer("BYSETPOS")
        if position is not None and position not in VALID_SET_POSITIONS:
            self.problem(f"unsupported BYSETPOS={position}")
            return None
        return position

    def weekdays(self) -> list[tuple[Optional[int], int]]:
        """Parse BYDAY into ``(ordinal, weekday)`` pairs, e.g. ``-1FR``."""
        raw = self.values.get("BYDAY")
        if not raw:
            return []
        result = []
        for item in raw.split(","):
            match = _BYDAY_ITEM.match(item.strip().upper())
            if not match or match.group(2) not in WEEKDAY_CODES:
                self.problem(f"unknown weekday {item!r}")
                continue
            ordinal = int(match.group(1)) if match.group(1) else None
            result.append((ordinal, WEEKDAY_CODES.index(match.group(2))))
        return result


def _read_mode(frequency: Frequency, reader: _RuleReader) -> Union[
    WeeklyDays, MonthlyDay, MonthlyNthWeekday, YearlyDate, YearlyNthWeekday, None
]:
    if frequency == Frequency.WEEKLY:
        days = frozenset(weekday for _, weekday in reader.weekdays())
        return WeeklyDays(days=days) if days else None

    if frequency == Frequency.MONTHLY:
        day = reader.integer("BYMONTHDAY", 1, 31)
        if day is not None:
            return MonthlyDay(day=day)
        nth = _read_nth_weekday(reader)
        if nth is not None:
            return MonthlyNthWeekday(position=nth[0], weekday=nth[1])
        return None

    if frequency == Frequency.YEARLY:
        month = reader.integer("BYMONTH", 1, 12)
        if month is None:
            return None
        day = reader.integer("BYMONTHDAY", 1, 31)
        if day is not None:
            return YearlyDate(month=month, day=day)
        nth = _read_nth_weekday(reader)
        if nth is not None:
            return YearlyNthWeekday(position=nth[0], weekday=nth[1], month=month)
        return None

    return None


def _read_nth_weekday(reader: _RuleReader) -> Optional[tuple[int, int]]:
    """Resolve ``BYDAY=<wd>;BYSETPOS=<n>`` or the inline ``BYDAY=<n><wd>`` form."""
    weekdays = reader.weekdays()
    if not weekdays:
        return None
    ordinal, weekday = weekdays[0]
    position = reader.set_position()
    if position is None and ordinal in VALID_SET_POSITIONS:
        position = ordinal
    if position is None:
        return None
    return position, weekday


def _read_end(reader: _RuleReader) -> Union[EndNever, EndAfter, EndOn]:
    # COUNT takes precedence; a hand-edited rule carrying both drops UNTIL
    count = reader.integer("COUNT", minimum=1)
    if count is not None:
        return EndAfter(count=count)

    raw_until = reader.values.get("UNTIL")
    if raw_until:
        try:
            return EndOn(until=parse_basic_utc(raw_until))
        except ValueError:
            reader.problem(f"malformed UNTIL={raw_until!r}")
    return EndNever()


def _read_spec(rule: object, strict: bool) -> Optional[RecurrenceSpec]:
    if not isinstance(rule, str):
        if strict:
            raise RuleParseError(f"Rule must be a string, got {type(rule).__name__}")
        return None

    _, tokens = split_rule(rule)
    values = {token_key(key): value.strip() for key, value in tokens if value is not None}
    reader = _RuleReader(rule, values, strict)

    raw_freq = values.get("FREQ")
    if not raw_freq:
        if strict:
            raise RuleParseError(f"Rule missing required FREQ: {rule!r}")
        return None
    try:
        frequency = Frequency(raw_freq.upper())
    except ValueError:
        if strict:
            raise RuleParseError(f"Unsupported FREQ={raw_freq!r} in rule {rule!r}") from None
        return None

    interval = reader.integer("INTERVAL", minimum=1) or 1

    try:
        return RecurrenceSpec(
            frequency=frequency,
            interval=interval,
            mode=_read_mode(frequency, reader),
            end=_read_end(reader),
        )
    except ValidationError as e:
        if strict:
            raise RuleParseError(f"Invalid rule {rule!r}: {e}") from e
        logger.debug("Rule %r decoded to an invalid spec: %s", rule, e)
        return None


def decode(rule: object) -> Optional[RecurrenceSpec]:
    """Decode a rule string, tolerating malformed input.

    Args:
        rule: Rule string, with or without the ``RRULE:`` prefix

    Returns:
        The decoded spec, or None when FREQ is missing or unrecognized
        (or the input is not a string). Never raises.
    """
    return _read_spec(rule, strict=False)


def parse_rule(rule: str) -> RecurrenceSpec:
    """Strictly parse a rule string.

    Raises:
        RuleParseError: If any token is malformed or FREQ is missing/unknown
    """
    spec = _read_spec(rule, strict=True)
    if spec is None:  # pragma: no cover - strict mode raises instead
        raise RuleParseError(f"Unable to parse rule {rule!r}")
    return spec
