"""UTC datetime helpers shared by the codec, expander and clamper.

Every instant handled by the engine is normalised to timezone-aware UTC.
Naive datetimes are taken to already be UTC.
"""

import logging
from datetime import UTC, date, datetime, time
from typing import Union

logger = logging.getLogger(__name__)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as a timezone-aware UTC datetime.

    Args:
        dt: Naive (assumed UTC) or aware datetime

    Returns:
        Aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def window_bound(value: Union[datetime, date], end_of_day: bool = False) -> datetime:
    """Coerce a query-window bound to aware UTC.

    A plain ``date`` covers the whole day: the start of the day for a lower
    bound, the last microsecond of the day when ``end_of_day`` is set.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=UTC)


def format_basic_utc(dt: datetime) -> str:
    """Format an instant as ``YYYYMMDDTHHMMSSZ`` in UTC (sub-seconds dropped).

    Fields are padded explicitly; ``%Y`` does not zero-pad years below 1000
    on every platform.
    """
    d = ensure_utc(dt)
    return (
        f"{d.year:04d}{d.month:02d}{d.day:02d}"
        f"T{d.hour:02d}{d.minute:02d}{d.second:02d}Z"
    )


def parse_basic_utc(value: str) -> datetime:
    """Parse an UNTIL-style value.

    Accepts ``YYYYMMDDTHHMMSS`` with or without a trailing ``Z`` and
    date-only ``YYYYMMDD``; a date-only value means the end of that day.
    Values without ``Z`` are read as UTC.

    Raises:
        ValueError: If the value matches none of the formats
    """
    text = value.strip().upper()
    stripped = text[:-1] if text.endswith("Z") else text

    formats = [
        "%Y%m%dT%H%M%S",  # 20250303T235959
        "%Y%m%d",  # 20250303
    ]

    for fmt in formats:
        try:
            dt = datetime.strptime(stripped, fmt)
        except ValueError:  # noqa: PERF203
            continue
        if fmt == "%Y%m%d":
            dt = datetime.combine(dt.date(), time(23, 59, 59))
        return dt.replace(tzinfo=UTC)

    raise ValueError(f"Unable to parse UNTIL value: {value!r}")


def parse_iso_instant(value: str) -> datetime:
    """Parse an ISO 8601 instant (``Z`` suffix allowed) into aware UTC.

    Raises:
        ValueError: If the string is not ISO 8601
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def to_iso_instant(dt: datetime) -> str:
    """Format an instant as ISO 8601 UTC with a ``Z`` suffix.

    Matches the exception format stored by the calendar service, e.g.
    ``2024-01-03T09:00:00.000Z``. Instants with sub-millisecond digits keep
    all six so they still match occurrence starts exactly.
    """
    utc = ensure_utc(dt)
    if utc.microsecond % 1000:
        fraction = f"{utc.microsecond:06d}"
    else:
        fraction = f"{utc.microsecond // 1000:03d}"
    return (
        f"{utc.year:04d}-{utc.month:02d}-{utc.day:02d}"
        f"T{utc.hour:02d}:{utc.minute:02d}:{utc.second:02d}.{fraction}Z"
    )
