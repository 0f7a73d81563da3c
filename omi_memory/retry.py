"""Exponential backoff policy for retryable API failures."""

from __future__ import annotations

from dataclasses import dataclass

from omi_memory.config import settings
from omi_memory.errors import ApiError, RateLimited


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between.

    Attributes:
        max_retries: Extra attempts after the first one. ``0`` disables retries.
        base_delay: Delay in seconds before the first retry.
        multiplier: Growth factor applied per retry.
        max_delay: Upper bound for any single delay, including ``Retry-After``.
    """

    max_retries: int = 0
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            msg = "max_retries must be >= 0"
            raise ValueError(msg)
        if self.base_delay < 0 or self.max_delay < 0:
            msg = "delays must be >= 0"
            raise ValueError(msg)
        if self.multiplier < 1:
            msg = "multiplier must be >= 1"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def should_retry(self, error: ApiError, attempt: int) -> bool:
        """True if *error* from the 1-based *attempt* deserves another try."""
        return error.retryable and attempt <= self.max_retries

    def delay(self, attempt: int, error: ApiError | None = None) -> float:
        """Seconds to wait after the 1-based *attempt* failed."""
        if isinstance(error, RateLimited) and error.retry_after is not None:
            return min(self.max_delay, max(0.0, error.retry_after))
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
