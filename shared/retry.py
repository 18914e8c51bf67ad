"""
Retry policy for client-driven resilience.

The relay itself never retries; a call through it is a single hop. Retry
timing lives here so the client loop and its tests share one definition.
"""

import random
from typing import Optional


class RetryPolicy:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 1.5,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 backoff_strategy: str = "fixed"):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0:
            raise ValueError("base_delay must not be negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max(max_delay, base_delay)
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        return calculate_delay(attempt, self, rng)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, base_delay={self.base_delay}, "
            f"max_delay={self.max_delay}, strategy={self.backoff_strategy!r}, jitter={self.jitter})"
        )


def calculate_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Calculate delay between retry attempts."""
    if policy.backoff_strategy == "exponential":
        delay = policy.base_delay * (policy.exponential_base ** (attempt - 1))
    elif policy.backoff_strategy == "linear":
        delay = policy.base_delay * attempt
    else:
        delay = policy.base_delay

    delay = min(delay, policy.max_delay)

    # Jitter only stretches the wait, up to max_delay
    if policy.jitter and policy.max_delay > delay:
        source = rng or random
        delay += source.uniform(0.0, policy.max_delay - delay)

    return max(0.0, delay)
