"""Token bucket throttling for the mock ingestion endpoint."""

from __future__ import annotations

import time
from collections.abc import Callable


class TokenBucket:
    """Token bucket rate limiter.

    Args:
        rate: Tokens added per second.
        burst: Maximum tokens (burst capacity).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0 or burst < 1:
            msg = "rate must be > 0 and burst >= 1"
            raise ValueError(msg)
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()

    def consume(self, tokens: int = 1) -> tuple[bool, float]:
        """Try to take *tokens*.

        Returns:
            (allowed, retry_after_seconds)
        """
        now = self._clock()
        elapsed = now - self._last_refill
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
        self._last_refill = now

        if self._tokens >= tokens:
            self._tokens -= tokens
            return True, 0.0
        return False, (tokens - self._tokens) / self.rate
