"""Backoff helpers for retrying transient cloud errors."""

import random


def compute_backoff(retry: int, base: float = 2.0, cap: float = 30.0, jitter: float = 0.0) -> float:
    """
    Exponential backoff delay before the given retry.

    Args:
        retry: Retry number, 1 for the first retry
        base: Delay before the first retry
        cap: Upper bound for the delay (jitter excluded)
        jitter: Maximum random seconds added on top

    Returns:
        Seconds to wait: min(cap, base * 2**(retry - 1)) plus jitter
    """
    if retry < 1:
        raise ValueError("retry must be >= 1")
    delay = min(cap, base * (2 ** (retry - 1)))
    if jitter:
        delay += random.uniform(0, jitter)
    return delay
