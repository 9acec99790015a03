"""Read-only progress record polled by status reporters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TransferSnapshot:
    """
    Point-in-time view of a running transfer.

    Reporters poll this from another thread; values are display
    approximations and never feed back into the transfer loop.

    Attributes:
        status_text: Short human-readable state ("12.5% of 25000 pages")
        done_elements: Rows written so far
        total_elements: Rows in the crawl
        chunk_size: Current chunk size
        timeout_count: 504 responses since the last shrink
        error_count: Failed attempts and error statuses (429 excluded)
        seconds_per_1000: Smoothed seconds needed per 1000 rows
        completed: True once the transfer finished
    """

    status_text: str
    done_elements: int
    total_elements: int
    chunk_size: int
    timeout_count: int
    error_count: int
    seconds_per_1000: float
    completed: bool = False

    @property
    def percent_complete(self) -> float:
        """Completion percentage rounded to one decimal (round-half-to-even)."""
        if self.total_elements == 0:
            return 100.0
        return round(self.done_elements / self.total_elements * 100, 1)

    @property
    def eta_seconds(self) -> int:
        """Estimated seconds left, truncated to whole seconds."""
        remaining = max(0, self.total_elements - self.done_elements)
        return int(remaining / 1000 * self.seconds_per_1000)
