from typing import Protocol, runtime_checkable

from ...domain.models.chunk import ChunkResponse


@runtime_checkable
class ChunkSourcePort(Protocol):
    """
    Protocol for fetching pages of a crawl from the remote API.

    Implementation Requirements:
    - Must send credentials with every request
    - Must return the (decompressed) body and status code without interpreting the status
    - Must raise TransportError only for connection-level failures (DNS, connect, read, decode)
    """

    def fetch_chunk(
        self,
        chunk_index: int,
        chunk_size: int,
        no_details: bool,
    ) -> ChunkResponse:
        """
        Request one TSV chunk.

        Args:
            chunk_index: Chunk number (``chunk`` parameter)
            chunk_size: Rows per chunk (``chunk_size`` parameter)
            no_details: Request the short schema (``deep=0``) when True

        Returns:
            ChunkResponse with status_code and body

        Raises:
            TransportError: On connection-level failures
        """
        ...

    def fetch_total(self) -> ChunkResponse:
        """
        Request the one-row JSON probe whose envelope carries the total row count.

        Returns:
            ChunkResponse with status_code and JSON body

        Raises:
            TransportError: On connection-level failures
        """
        ...
