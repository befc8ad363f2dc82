"""Truncation of a series so that it ends before a cutoff instant.

Used for "this and following" edits: the original series keeps its rule up to
the split point and a new series carries the remainder. The rewrite works on
the ordered token list rather than a decoded spec, so unknown tokens, token
order and the prefix survive untouched.
"""

import logging
from datetime import datetime, timedelta

from .datetime_utils import ensure_utc, format_basic_utc
from .rule_codec import join_rule, split_rule, token_key

logger = logging.getLogger(__name__)


def clamp_until(rule: str, cutoff: datetime) -> str:
    """Rewrite ``rule`` so no occurrence starts at or after ``cutoff``.

    COUNT is removed and UNTIL is set to one second before the cutoff (UNTIL
    is inclusive). An existing UNTIL keeps its position; otherwise UNTIL is
    appended.

    Args:
        rule: Rule string as stored
        cutoff: First instant that must be excluded (naive = UTC)

    Returns:
        The clamped rule, or ``rule`` unchanged when it is not a recognizable
        rule (not a string, or no FREQ token)
    """
    if not isinstance(rule, str):
        return rule

    prefix, tokens = split_rule(rule)
    if not any(token_key(key) == "FREQ" for key, _ in tokens):
        logger.debug("Not clamping unrecognized rule %r", rule)
        return rule

    until_value = format_basic_utc(ensure_utc(cutoff) - timedelta(seconds=1))

    rewritten = []
    until_written = False
    for key, value in tokens:
        normalized = token_key(key)
        if normalized == "COUNT":
            continue
        if normalized == "UNTIL":
            if until_written:
                continue
            rewritten.append((key, until_value))
            until_written = True
            continue
        rewritten.append((key, value))

    if not until_written:
        rewritten.append(("UNTIL", until_value))

    clamped = join_rule(prefix, rewritten)
    logger.debug("Clamped rule %r at %s -> %r", rule, cutoff.isoformat(), clamped)
    return clamped
