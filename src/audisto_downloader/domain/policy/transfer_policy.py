from dataclasses import dataclass, field

from .retry_policy import RetryPolicy


@dataclass(frozen=True)
class TransferPolicy:
    """Policy for the chunk transfer loop: backoff, adaptive shrink and retries."""

    initial_chunk_size: int = 10000
    backoff_seconds: float = 30.0
    shrink_step: int = 1000
    timeout_threshold: int = 3
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy.fixed(5, 10.0))
    smoothing_factor: float = 0.005
    initial_seconds_per_1000: float = 5.0

    def __post_init__(self) -> None:
        """Validate transfer policy."""
        if self.initial_chunk_size <= 0:
            raise ValueError(f"initial_chunk_size must be > 0, got {self.initial_chunk_size}")
        if self.shrink_step <= 0:
            raise ValueError(f"shrink_step must be > 0, got {self.shrink_step}")
        if self.timeout_threshold < 1:
            raise ValueError(f"timeout_threshold must be >= 1, got {self.timeout_threshold}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
