from pydantic import BaseModel, Field, field_validator


class TransferRequest(BaseModel):
    """Request DTO for the crawl download use case."""

    username: str
    password: str
    crawl_id: int = Field(gt=0)
    no_details: bool = False
    output: str = ""  # empty means stdout, which cannot be resumed
    resume: bool = True

    @field_validator("username", "password", "output", mode="before")
    @classmethod
    def strip_whitespace(cls, v: object) -> object:
        """Trim surrounding whitespace from text inputs."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("username", "password")
    @classmethod
    def require_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v

    @property
    def to_stdout(self) -> bool:
        return self.output == ""


class TransferResult(BaseModel):
    """Result DTO for the crawl download use case."""

    crawl_id: int | None = None
    output: str
    done_elements: int
    total_elements: int
    chunks_fetched: int
    rows_written: int
    duration_seconds: float
    timeout_count: int = 0
    error_count: int = 0
    completed: bool = True
