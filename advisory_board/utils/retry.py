"""
Retry and backoff helpers shared by the recovery layer.
Delays are expressed in seconds.
"""

import os
import random
from typing import Optional


class RetryConfig:
    """Default retry timings loaded from environment."""

    BASE_DELAY = float(os.getenv("ADVISOR_RETRY_BASE_DELAY", "1"))
    MAX_DELAY = float(os.getenv("ADVISOR_RETRY_MAX_DELAY", "8"))
    BACKOFF_MULTIPLIER = float(os.getenv("ADVISOR_RETRY_MULTIPLIER", "2"))
    # Deterministic by default so retry timing stays testable
    JITTER = os.getenv("ADVISOR_RETRY_JITTER", "none").lower()


def apply_jitter(delay: float, jitter_mode: str = "none") -> float:
    """
    Apply jitter to a delay value to prevent thundering herd.

    Args:
        delay: Base delay in seconds
        jitter_mode: "full", "equal", or "none"
    """
    if jitter_mode == "full":
        return random.uniform(0, delay)
    if jitter_mode == "equal":
        return delay / 2 + random.uniform(0, delay / 2)
    return delay


def calculate_exponential_backoff(
    attempt: int,
    base_delay: Optional[float] = None,
    factor: Optional[float] = None,
    max_delay: Optional[float] = None,
    jitter_mode: Optional[str] = None,
) -> float:
    """
    Delay before retry number ``attempt`` (1-based).

    ``min(base * factor ** (attempt - 1), max_delay)`` with optional jitter;
    the first retry waits exactly ``base_delay``.
    """
    base = RetryConfig.BASE_DELAY if base_delay is None else base_delay
    fac = RetryConfig.BACKOFF_MULTIPLIER if factor is None else factor
    cap = RetryConfig.MAX_DELAY if max_delay is None else max_delay
    jitter = jitter_mode or RetryConfig.JITTER

    delay = base * (fac ** max(0, attempt - 1))
    delay = min(delay, cap)
    return max(0.0, apply_jitter(delay, jitter))

