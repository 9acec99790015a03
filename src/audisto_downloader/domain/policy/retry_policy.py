from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class FixedDelay:
    """Same delay before every retry (no exponential growth, no jitter)."""

    seconds: float = 10.0

    def __call__(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget and delay strategy for retried operations.

    Attributes:
        max_attempts: Total attempts, including the first call
        delay: Maps the 1-based number of the failed attempt to seconds to wait
    """

    max_attempts: int = 5
    delay: Callable[[int], float] = field(default_factory=FixedDelay)

    def __post_init__(self) -> None:
        """Validate retry policy."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def fixed(cls, max_attempts: int, delay_seconds: float) -> RetryPolicy:
        return cls(max_attempts=max_attempts, delay=FixedDelay(delay_seconds))
