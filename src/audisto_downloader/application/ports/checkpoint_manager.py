"""Port interface for managing checkpoint sidecar files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.models.checkpoint import TransferCheckpoint


class CheckpointManagerPort(ABC):
    """Port for managing the checkpoint sidecar that belongs to an output file."""

    @abstractmethod
    def get_checkpoint_path(self, output_path: Path | str) -> Path:
        """
        Derive the sidecar path from the output path.

        Args:
            output_path: Path of the TSV output file

        Returns:
            Sidecar path (deterministic for a given output path)
        """
        pass

    @abstractmethod
    def save_checkpoint(
        self,
        checkpoint: TransferCheckpoint,
        output_path: Path | str,
    ) -> None:
        """
        Save checkpoint atomically (write to temp file, then rename).

        Args:
            checkpoint: TransferCheckpoint domain entity
            output_path: Output file the checkpoint belongs to

        Raises:
            CheckpointWriteError: If save fails
        """
        pass

    @abstractmethod
    def load_checkpoint(
        self,
        output_path: Path | str,
    ) -> TransferCheckpoint | None:
        """
        Load the checkpoint that belongs to an output file.

        Args:
            output_path: Output file the checkpoint belongs to

        Returns:
            TransferCheckpoint, or None if no sidecar exists

        Raises:
            CheckpointReadError: If the sidecar exists but cannot be read/parsed
        """
        pass

    @abstractmethod
    def delete_checkpoint(
        self,
        output_path: Path | str,
    ) -> bool:
        """
        Remove the sidecar after a completed download.

        Returns:
            True if a sidecar was removed
        """
        pass

    @abstractmethod
    def checkpoint_exists(
        self,
        output_path: Path | str,
    ) -> bool:
        """
        Check if a sidecar exists for the output file.
        """
        pass
