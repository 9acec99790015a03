from typing import Protocol, runtime_checkable


@runtime_checkable
class OutputSinkPort(Protocol):
    """
    Protocol for the append-only destination of TSV rows.

    Implementation Requirements:
    - Must never rewrite bytes already committed by flush()
    - flush() must leave every written row on durable storage (for file sinks)
    - abort() must drop rows written since the last flush (for file sinks)
    - Storage failures must surface as OutputWriteError
    """

    @property
    def durable(self) -> bool:
        """True when the sink survives the process and supports resumption."""
        ...

    def write_row(self, row: str) -> None:
        """Append one row; the sink adds the line terminator."""
        ...

    def flush(self) -> None:
        """Push buffered rows to the underlying storage."""
        ...

    def committed_bytes(self) -> int | None:
        """Byte length of the output as of the last flush (None when not durable)."""
        ...

    def close(self) -> None:
        """Flush and release the underlying handle."""
        ...

    def abort(self) -> None:
        """Release the handle after a failed transfer, keeping only flushed rows."""
        ...
