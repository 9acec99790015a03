"""Checkpoint manager adapter for atomic sidecar file I/O."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from ...application.ports.checkpoint_manager import CheckpointManagerPort
from ...domain.errors import CheckpointReadError, CheckpointWriteError
from ...domain.models.checkpoint import DEFAULT_CHUNK_SIZE, TransferCheckpoint

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".audisto_"


class CheckpointManagerAdapter(CheckpointManagerPort):
    """Keeps the checkpoint in a JSON sidecar next to the output file."""

    def __init__(self, suffix: str = DEFAULT_SUFFIX, default_chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """
        Initialize checkpoint manager.

        Args:
            suffix: Appended to the output path to name the sidecar
            default_chunk_size: Chunk size for sidecars that carry none
        """
        if not suffix:
            raise ValueError("suffix must be non-empty")
        self.suffix = suffix
        self.default_chunk_size = default_chunk_size

    def get_checkpoint_path(self, output_path: Path | str) -> Path:
        """
        Generate sidecar path from the output path.

        Returns:
            Path to sidecar ({output_path}{suffix})
        """
        return Path(f"{output_path}{self.suffix}")

    def checkpoint_exists(self, output_path: Path | str) -> bool:
        return self.get_checkpoint_path(output_path).exists()

    def save_checkpoint(
        self,
        checkpoint: TransferCheckpoint,
        output_path: Path | str,
    ) -> None:
        """
        Save checkpoint atomically (write to temp file, then rename).

        A crash mid-write leaves the previous sidecar intact.

        Raises:
            CheckpointWriteError: If save fails
        """
        path = self.get_checkpoint_path(output_path)
        temp_path: Path | None = None

        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=path.parent,
                prefix=f".{path.name}.tmp.",
                delete=False,
                encoding="utf-8",
            ) as temp_file:
                temp_path = Path(temp_file.name)
                json.dump(checkpoint.to_dict(), temp_file, indent="\t")
                temp_file.flush()
                os.fsync(temp_file.fileno())

            os.replace(temp_path, path)

            logger.debug(
                f"Checkpoint saved: {path}",
                extra={"path": str(path), "done_elements": checkpoint.done_elements},
            )

        except OSError as e:
            if temp_path is not None and temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    logger.debug(f"Could not remove temp file {temp_path}")

            error_msg = f"Failed to save checkpoint to {path}: {e}"
            logger.error(error_msg, exc_info=True)
            raise CheckpointWriteError(error_msg) from e

    def load_checkpoint(
        self,
        output_path: Path | str,
    ) -> TransferCheckpoint | None:
        """
        Load checkpoint from the sidecar.

        Returns:
            TransferCheckpoint, or None if the sidecar doesn't exist

        Raises:
            CheckpointReadError: If the sidecar exists but cannot be read/parsed
        """
        path = self.get_checkpoint_path(output_path)

        if not path.exists():
            logger.debug(f"Checkpoint file not found: {path}")
            return None

        try:
            with path.open("r", encoding="utf-8") as f:
                checkpoint_dict = json.load(f)
            checkpoint = TransferCheckpoint.from_dict(checkpoint_dict, default_chunk_size=self.default_chunk_size)

        except json.JSONDecodeError as e:
            error_msg = f"Resumer file error: invalid JSON in {path}: {e}"
            logger.error(error_msg)
            raise CheckpointReadError(error_msg) from e
        except (OSError, KeyError, TypeError, ValueError) as e:
            error_msg = f"Resumer file error: cannot load {path}: {e}"
            logger.error(error_msg)
            raise CheckpointReadError(error_msg) from e

        logger.debug(
            f"Checkpoint loaded: {path}",
            extra={"path": str(path), "done_elements": checkpoint.done_elements},
        )
        return checkpoint

    def delete_checkpoint(self, output_path: Path | str) -> bool:
        path = self.get_checkpoint_path(output_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Checkpoint removed: {path}")
        return True
