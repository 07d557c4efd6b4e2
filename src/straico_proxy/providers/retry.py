"""Retry policy for upstream calls."""
import random
from typing import Callable, Optional

from ..core.settings import Settings


class RetryPolicy:
    """Exponential backoff with bounded jitter.

    The delay before retry ``n`` (0-based) is ``base * 2**n`` plus a random
    share of at most ``jitter`` of that value. With ``jitter < 1`` every delay
    is strictly longer than the previous one.
    """

    def __init__(
        self,
        max_retries: int,
        base_delay: float,
        jitter: float,
        rand: Optional[Callable[[float, float], float]] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if not 0.0 <= jitter < 1.0:
            raise ValueError("jitter must be in [0, 1)")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter = jitter
        self._rand = rand or random.uniform

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build the policy from application settings."""
        return cls(
            max_retries=settings.UPSTREAM_MAX_RETRIES,
            base_delay=settings.UPSTREAM_RETRY_BASE_DELAY,
            jitter=settings.UPSTREAM_RETRY_JITTER,
        )

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, the first one included."""
        return self.max_retries + 1

    def delay(self, retry: int) -> float:
        """Seconds to wait before the given 0-based retry."""
        step = self.base_delay * (2**retry)
        return step + self._rand(0.0, step * self.jitter)
