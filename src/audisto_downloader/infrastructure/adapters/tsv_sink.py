"""Output sinks for downloaded TSV rows."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import TextIO

from ...application.ports.output_sink import OutputSinkPort
from ...domain.errors import OutputMismatchError, OutputWriteError

logger = logging.getLogger(__name__)

ROW_TERMINATOR = "\n"


class FileOutputSink(OutputSinkPort):
    """Append-only TSV file; flush() commits the rows written so far."""

    def __init__(self, path: Path | str, create: bool = False, truncate_to: int | None = None) -> None:
        """
        Open the output file.

        Args:
            path: Output file path
            create: Create a new file (fails if it exists) instead of appending to an existing one
            truncate_to: When appending, cut the file back to this byte length first

        Raises:
            OutputWriteError: If the file cannot be opened (exists on create, missing on append)
            OutputMismatchError: If the file is shorter than truncate_to
        """
        self.path = Path(path)
        if not create and truncate_to is not None:
            self._discard_uncommitted(truncate_to)

        mode = "x" if create else "r+"
        try:
            # newline="" keeps row bytes exactly as received
            self._file: TextIO = self.path.open(mode, encoding="utf-8", newline="")
            if not create:
                self._file.seek(0, os.SEEK_END)
            self._committed = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e
        logger.debug(f"Opened output {self.path} ({'new' if create else 'append'}, {self._committed} bytes)")

    def _discard_uncommitted(self, size: int) -> None:
        try:
            actual = self.path.stat().st_size
            if actual > size:
                logger.warning(f"Discarding {actual - size} bytes written to {self.path} after the last checkpoint")
                os.truncate(self.path, size)
        except OSError as e:
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e
        if actual < size:
            raise OutputMismatchError(str(self.path), size, actual)

    @property
    def durable(self) -> bool:
        return True

    def write_row(self, row: str) -> None:
        try:
            self._file.write(row + ROW_TERMINATOR)
        except OSError as e:
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e

    def flush(self) -> None:
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
            self._committed = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e

    def committed_bytes(self) -> int | None:
        return self._committed

    def close(self) -> None:
        if self._file.closed:
            return
        self.flush()
        self._file.close()

    def abort(self) -> None:
        """Close the file and cut it back to the last flush."""
        if not self._file.closed:
            try:
                self._file.close()
            except OSError as e:
                # the handle is released even when the final buffer flush fails
                logger.warning(f"Closing {self.path} after a failed transfer: {e}")
        if self.path.stat().st_size > self._committed:
            os.truncate(self.path, self._committed)
            logger.info(f"Rolled {self.path} back to {self._committed} bytes")


class ConsoleOutputSink(OutputSinkPort):
    """Writes rows to a text stream (stdout by default); cannot be resumed."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    @property
    def durable(self) -> bool:
        return False

    def write_row(self, row: str) -> None:
        self.stream.write(row + ROW_TERMINATOR)

    def flush(self) -> None:
        self.stream.flush()

    def committed_bytes(self) -> int | None:
        return None

    def close(self) -> None:
        self.flush()

    def abort(self) -> None:
        # rows already on the stream cannot be taken back
        self.flush()


def open_output_sink(output_path: str, create: bool, truncate_to: int | None = None) -> OutputSinkPort:
    """
    Open the sink for an output path; an empty path means stdout.

    Args:
        output_path: Output file path or ""
        create: True for a new file, False to append to an existing one
        truncate_to: Committed byte length to restore before appending
    """
    if not output_path:
        return ConsoleOutputSink()
    return FileOutputSink(output_path, create=create, truncate_to=truncate_to)
