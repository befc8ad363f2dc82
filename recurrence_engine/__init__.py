"""recurrence_engine - recurrence rules for calendar events and tasks.

Encodes and decodes RRULE-style rule strings, expands recurring series into
occurrences (with a bounded cache), clamps series for "this and following"
edits and renders rules as short English sentences.
"""

__version__ = "1.0.0"

from typing import Optional

from .expansion_cache import (
    ExpansionCache,
    expand_occurrences,
    get_expansion_cache,
    reset_expansion_cache,
)
from .human_text import describe
from .models import (
    EndAfter,
    EndNever,
    EndOn,
    EventRecord,
    Frequency,
    MonthlyDay,
    MonthlyNthWeekday,
    Occurrence,
    RecurrenceSpec,
    Series,
    WeeklyDays,
    YearlyDate,
    YearlyNthWeekday,
)
from .occurrence_expander import expand
from .rule_codec import decode, encode, parse_rule
from .series_clamper import clamp_until
from .series_editing import (
    SeriesSplit,
    default_spec,
    exclude_occurrence,
    split_series,
    with_end_condition,
)


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized stderr handler when the root logger has none, then
    applies ``level_name``. RECURRENCE_ENGINE_DEBUG (truthy values: "1",
    "true", "yes", "on") forces DEBUG.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("RECURRENCE_ENGINE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure basic handler if no handlers are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, only the level colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = [
    "EndAfter",
    "EndNever",
    "EndOn",
    "EventRecord",
    "ExpansionCache",
    "Frequency",
    "MonthlyDay",
    "MonthlyNthWeekday",
    "Occurrence",
    "RecurrenceSpec",
    "Series",
    "SeriesSplit",
    "WeeklyDays",
    "YearlyDate",
    "YearlyNthWeekday",
    "clamp_until",
    "decode",
    "default_spec",
    "describe",
    "encode",
    "exclude_occurrence",
    "expand",
    "expand_occurrences",
    "get_expansion_cache",
    "parse_rule",
    "reset_expansion_cache",
    "split_series",
    "with_end_condition",
]
