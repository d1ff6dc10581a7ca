"""Retry policy for transient transport failures.

Transient failures (connection errors, timeouts, malformed responses) are
retried with bounded exponential backoff. Rate limits are never retried
automatically; the caller gets the server's retry-after hint instead.
"""

import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


# =============================================================================
# Retry with Exponential Backoff
# =============================================================================

@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    multiplier: float = 2.0  # exponential factor
    jitter: float = 0.0  # random factor (0.5 = +/- 50%)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter."""
    delay = config.initial_delay * (config.multiplier ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * config.jitter
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0, delay)


class Backoff:
    """
    Waits between retry attempts.

    The sleep function is injectable so tests can record delays instead of
    waiting. When a cancel event is given, the wait ends as soon as the
    event is set and ``wait`` reports the cancellation.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.config.max_retries

    def delay_for(self, attempt: int) -> float:
        return calculate_delay(attempt, self.config)

    def wait(self, attempt: int, cancel: Optional[threading.Event] = None) -> bool:
        """
        Sleep before retry number ``attempt + 1``.

        Returns:
            False if the wait was cut short by cancellation
        """
        delay = self.delay_for(attempt)
        if cancel is None:
            self._sleep(delay)
            return True
        return not cancel.wait(delay)

