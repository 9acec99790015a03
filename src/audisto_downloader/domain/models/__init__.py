"""Domain models for crawl downloads."""

from .checkpoint import ChunkAddress, TransferCheckpoint, chunk_address
from .chunk import ChunkResponse, split_rows
from .transfer_status import TransferSnapshot

__all__ = [
    "ChunkAddress",
    "TransferCheckpoint",
    "chunk_address",
    "ChunkResponse",
    "split_rows",
    "TransferSnapshot",
]
