"""
Retry policy for translation provider calls.
"""

import random
from dataclasses import dataclass, field
from typing import Optional

from locsync.config import ProviderOptions
from locsync.exceptions import TranslationError

# Client errors that will fail the same way on every attempt
NON_RETRYABLE_STATUS_CODES = frozenset({400, 401, 403})


@dataclass
class BackoffPolicy:
    """
    Exponential backoff with optional jitter.

    delay(n) = min(max_delay, base_delay * factor ** (n - 1)) plus up to
    `jitter` times that value drawn from `rng`.
    """
    base_delay: float = 2.0
    factor: float = 2.0
    max_delay: float = 60.0
    jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        attempt = max(1, attempt)
        delay = min(self.max_delay, self.base_delay * self.factor ** (attempt - 1))
        if self.jitter > 0:
            delay += delay * self.jitter * self.rng.random()
        return max(0.0, delay)

    @classmethod
    def from_options(cls, options: ProviderOptions, rng: Optional[random.Random] = None) -> "BackoffPolicy":
        return cls(
            base_delay=options.wait_seconds_before_retry,
            factor=options.backoff_factor,
            max_delay=options.max_wait_seconds,
            jitter=options.jitter,
            rng=rng or random.Random(),
        )


def is_retryable(error: Exception) -> bool:
    """Whether another attempt may succeed after this error."""
    if isinstance(error, TranslationError):
        status_code = error.details.get("status_code")
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
    return True
