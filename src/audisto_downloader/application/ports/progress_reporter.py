"""Port interface for reporting progress of a running transfer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from ...domain.models.transfer_status import TransferSnapshot


SnapshotProvider = Callable[[], "TransferSnapshot"]


class ProgressContext(Protocol):
    """Handle for a running progress display."""

    def refresh(self) -> None:
        """Poll the snapshot provider once and redraw."""
        ...

    def finish(self) -> None:
        """Stop polling and render the final state."""
        ...


class ProgressReporterPort(ABC):
    """
    Port for displaying transfer progress.

    Reporters only read snapshots; they never change engine state.
    """

    @abstractmethod
    def start(
        self,
        provider: SnapshotProvider,
        description: str = "Downloading pages",
    ) -> ProgressContext:
        """
        Start displaying progress polled from provider.

        Args:
            provider: Callable returning the current TransferSnapshot
            description: Label for the display

        Returns:
            ProgressContext; call finish() when the transfer ends
        """
        pass
