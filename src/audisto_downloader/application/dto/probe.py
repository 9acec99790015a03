from pydantic import BaseModel, Field


class ChunkInfo(BaseModel):
    """Pagination block of the JSON probe answer."""

    total: int = Field(ge=0)
    page: int = 0
    size: int = 0


class ProbeEnvelope(BaseModel):
    """JSON envelope returned by ``output=json`` requests."""

    chunk: ChunkInfo
