"""Retry decisions for step attempts."""

import math
from dataclasses import dataclass
from typing import Any

__all__ = ["RetryState", "RetryPolicy", "parse_retry"]


@dataclass
class RetryState:
    """Attempt bookkeeping for a single step invocation."""

    max_retries: int = 0
    attempts_made: int = 0


class RetryPolicy:
    """Decides whether a failed attempt is retried. No backoff, no side effects."""

    @staticmethod
    def should_retry(state: RetryState) -> bool:
        return state.attempts_made < state.max_retries


def parse_retry(value: Any) -> int:
    """Parses a step's declared retry option.

    Finite numbers and numeric strings are truncated to an int. Anything else
    (None, booleans, non-numeric text, inf/nan, negative values) means no retry.

    Examples:
        >>> parse_retry(2)
        2
        >>> parse_retry("3")
        3
        >>> parse_retry("many")
        0
    """
    if value is None or isinstance(value, bool):
        return 0

    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0

    if not math.isfinite(number):
        return 0

    return max(int(number), 0)
