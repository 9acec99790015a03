"""Domain model for the resumable download checkpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

DEFAULT_CHUNK_SIZE = 10000


@dataclass(frozen=True)
class ChunkAddress:
    """
    Location of the next unread row within the paginated row stream.

    Attributes:
        index: Chunk number to request (``chunk`` query parameter)
        size: Chunk size the index was computed with (``chunk_size`` query parameter)
        skip_rows: Rows to discard from the returned chunk before appending
    """

    index: int
    size: int
    skip_rows: int


def chunk_address(done_elements: int, chunk_size: int) -> ChunkAddress:
    """
    Map a count of already-written rows onto a chunk address.

    Every chunk starts with a header row, so once any row has been written the
    skip count is one larger than the offset inside the chunk window. The
    address only depends on the values passed in, which keeps it valid after
    the chunk size changed mid-session.

    Args:
        done_elements: Rows already persisted (header excluded)
        chunk_size: Chunk size the request will be issued with

    Returns:
        ChunkAddress for the request

    Raises:
        ValueError: If chunk_size <= 0 or done_elements < 0
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    if done_elements < 0:
        raise ValueError(f"done_elements must be >= 0, got {done_elements}")

    if done_elements == 0:
        return ChunkAddress(index=0, size=chunk_size, skip_rows=0)

    index, offset = divmod(done_elements, chunk_size)
    return ChunkAddress(index=index, size=chunk_size, skip_rows=offset + 1)


@dataclass
class TransferCheckpoint:
    """
    Durable record of download progress for one output file.

    Attributes:
        output_filename: Output path the checkpoint belongs to (empty for stdout)
        total_elements: Rows the crawl holds, probed once at session start
        done_elements: Rows already appended to the output
        no_details: True when rows were requested with ``deep=0``
        chunk_size: Current (adaptive) chunk size
        output_bytes: Byte length of the output when done_elements was recorded
            (None for stdout and for sidecars written without it)
    """

    output_filename: str
    total_elements: int
    done_elements: int = 0
    no_details: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    output_bytes: int | None = None

    def __post_init__(self) -> None:
        """Validate checkpoint invariants."""
        if self.total_elements < 0:
            raise ValueError("total_elements must be >= 0")
        if self.done_elements < 0:
            raise ValueError("done_elements must be >= 0")
        if self.done_elements > self.total_elements:
            raise ValueError(
                f"done_elements ({self.done_elements}) cannot exceed "
                f"total_elements ({self.total_elements})"
            )
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")
        if self.output_bytes is not None and self.output_bytes < 0:
            raise ValueError("output_bytes must be >= 0")

    @property
    def remaining_elements(self) -> int:
        return self.total_elements - self.done_elements

    def is_complete(self) -> bool:
        return self.done_elements == self.total_elements

    def next_chunk_address(self) -> ChunkAddress:
        """Address of the next chunk for the current chunk size."""
        return chunk_address(self.done_elements, self.chunk_size)

    def clamp_chunk_size(self) -> bool:
        """
        Reduce chunk_size to the remaining row count when fewer rows are left.

        Returns:
            True if the chunk size changed
        """
        remaining = self.remaining_elements
        if 0 < remaining < self.chunk_size:
            self.chunk_size = remaining
            return True
        return False

    def shrink_chunk_size(self, step: int) -> int:
        """
        Decrease chunk_size by step, never below 1.

        Returns:
            The new chunk size
        """
        self.chunk_size = max(1, self.chunk_size - step)
        return self.chunk_size

    def record_rows(self, count: int) -> None:
        """Advance done_elements after rows were appended to the output."""
        if count < 0:
            raise ValueError("count must be >= 0")
        if self.done_elements + count > self.total_elements:
            raise ValueError(
                f"Recording {count} rows would exceed total_elements ({self.total_elements})"
            )
        self.done_elements += count

    def progress_percent(self) -> float:
        """Completion percentage (0.0 to 100.0); an empty crawl counts as complete."""
        if self.total_elements == 0:
            return 100.0
        return self.done_elements / self.total_elements * 100

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the sidecar JSON layout."""
        data: dict[str, Any] = {
            "outputFilename": self.output_filename,
            "doneElements": self.done_elements,
            "totalElements": self.total_elements,
            "noDetails": self.no_details,
            "chunkSize": self.chunk_size,
        }
        if self.output_bytes is not None:
            data["outputBytes"] = self.output_bytes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_chunk_size: int = DEFAULT_CHUNK_SIZE) -> TransferCheckpoint:
        """
        Deserialize from the sidecar JSON layout.

        Sidecars written without ``chunkSize`` resume with default_chunk_size;
        without ``outputBytes`` the output is appended to as found.
        """
        output_bytes = data.get("outputBytes")
        return cls(
            output_filename=data.get("outputFilename", ""),
            total_elements=int(data["totalElements"]),
            done_elements=int(data.get("doneElements", 0)),
            no_details=bool(data.get("noDetails", False)),
            chunk_size=int(data.get("chunkSize") or default_chunk_size),
            output_bytes=None if output_bytes is None else int(output_bytes),
        )
