"""Domain service for the smoothed download-rate estimate."""

from __future__ import annotations

DEFAULT_SMOOTHING_FACTOR = 0.005
DEFAULT_SECONDS_PER_1000 = 5.0


class ThroughputEstimator:
    """
    Exponentially smoothed estimate of seconds needed per 1000 rows.

    The estimate only feeds the ETA shown to the user. This service is pure
    (no I/O, no clock); callers pass elapsed time in.
    """

    def __init__(
        self,
        smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR,
        initial_seconds_per_1000: float = DEFAULT_SECONDS_PER_1000,
    ) -> None:
        if not (0.0 < smoothing_factor <= 1.0):
            raise ValueError(f"smoothing_factor must be in (0, 1], got {smoothing_factor}")
        self.smoothing_factor = smoothing_factor
        self.seconds_per_1000 = initial_seconds_per_1000

    def observe(self, elapsed_seconds: float, rows: int) -> float:
        """
        Blend one iteration's rate into the estimate.

        Iterations that appended no rows carry no rate and leave the estimate
        unchanged.

        Args:
            elapsed_seconds: Wall time of the iteration
            rows: Rows appended during the iteration

        Returns:
            Updated seconds per 1000 rows
        """
        if rows <= 0:
            return self.seconds_per_1000
        instant = elapsed_seconds / (rows / 1000)
        alpha = self.smoothing_factor
        self.seconds_per_1000 = alpha * instant + (1 - alpha) * self.seconds_per_1000
        return self.seconds_per_1000
