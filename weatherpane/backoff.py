"""Bounded exponential backoff with jitter for provider retries."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from weatherpane import config


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently a failed request is retried.

    `max_attempts` counts every attempt, including the first one. The delay
    before attempt n+1 is ``min(max_delay, base_delay * 2 ** (n - 1))``
    with up to `jitter` of it randomly shaved off, so many panels started
    together do not hit the provider in lockstep.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")

    @classmethod
    def from_settings(cls, settings: config.Settings | None = None) -> "RetryPolicy":
        """Build the policy from the retry_* settings."""
        settings = settings or config.settings
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )

    def can_retry(self, attempt: int) -> bool:
        """True if another attempt is allowed after `attempt` failed."""
        return attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        capped = min(self.max_delay, self.base_delay * (2 ** max(0, attempt - 1)))
        return capped * (1.0 - self.jitter * self.rng.random())
