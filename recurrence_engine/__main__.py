"""Command-line entry for recurrence_engine.

Small developer tool for inspecting stored rules: describe them, expand them
over a window, clamp them at a cutoff or validate them strictly.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Optional

from . import _init_logging
from .config_loader import load_config
from .datetime_utils import parse_iso_instant, to_iso_instant
from .exceptions import ConfigError, RuleParseError
from .expansion_cache import get_expansion_cache
from .human_text import describe
from .logging_config import configure_logging
from .models import Series
from .rule_codec import encode, parse_rule
from .series_clamper import clamp_until

logger = logging.getLogger(__name__)


def _instant(value: str) -> datetime:
    try:
        return parse_iso_instant(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 instant: {value!r}") from e


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the recurrence_engine CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="recurrence-engine",
        description="Inspect, expand and clamp recurrence rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  recurrence-engine describe "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE" --anchor 2024-01-01T09:00:00Z
  recurrence-engine expand "RRULE:FREQ=DAILY;INTERVAL=1;COUNT=5" \\
      --start 2024-01-01T09:00:00Z --end 2024-01-01T10:00:00Z \\
      --from 2024-01-01T00:00:00Z --to 2024-02-01T00:00:00Z
  recurrence-engine clamp "RRULE:FREQ=DAILY;INTERVAL=1;COUNT=5" --cutoff 2024-01-03T09:00:00Z
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_describe = sub.add_parser("describe", help="Print a human-readable summary")
    p_describe.add_argument("rule")
    p_describe.add_argument("--anchor", type=_instant, required=True, help="Series start")

    p_expand = sub.add_parser("expand", help="Print occurrences as JSON lines")
    p_expand.add_argument("rule")
    p_expand.add_argument("--start", type=_instant, required=True, help="Anchor start")
    p_expand.add_argument("--end", type=_instant, required=True, help="Anchor end")
    p_expand.add_argument("--from", dest="window_start", type=_instant, required=True)
    p_expand.add_argument("--to", dest="window_end", type=_instant, required=True)
    p_expand.add_argument(
        "--exception", action="append", type=_instant, default=[], help="Canceled start (repeatable)"
    )
    p_expand.add_argument("--id", default="cli", help="Series id used in instance ids")

    p_clamp = sub.add_parser("clamp", help="Print the rule clamped before a cutoff")
    p_clamp.add_argument("rule")
    p_clamp.add_argument("--cutoff", type=_instant, required=True)

    p_validate = sub.add_parser("validate", help="Strictly parse and print the canonical rule")
    p_validate.add_argument("rule")

    return parser


def _run(args: argparse.Namespace) -> int:
    if args.command == "describe":
        print(describe(args.rule, args.anchor))
        return 0

    if args.command == "expand":
        series = Series(
            id=args.id,
            anchor_start=args.start,
            anchor_end=args.end,
            rule=args.rule,
            exceptions=frozenset(args.exception),
        )
        for occurrence in get_expansion_cache().expand(series, args.window_start, args.window_end):
            print(
                json.dumps(
                    {
                        "id": occurrence.instance_id,
                        "start": to_iso_instant(occurrence.start),
                        "end": to_iso_instant(occurrence.end),
                    }
                )
            )
        return 0

    if args.command == "clamp":
        print(clamp_until(args.rule, args.cutoff))
        return 0

    if args.command == "validate":
        try:
            spec = parse_rule(args.rule)
        except RuleParseError as e:
            print(f"invalid: {e}", file=sys.stderr)
            return 1
        print(encode(spec))
        return 0

    return 2  # pragma: no cover - argparse enforces the choices


def main(argv: Optional[list[str]] = None) -> int:
    """Run the recurrence_engine CLI and return its exit status."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _init_logging(config.log_level)
    configure_logging(debug_mode=config.debug or args.debug)
    get_expansion_cache(config)

    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
