"""Pydantic settings for audisto.toml configuration."""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ...domain.policy.retry_policy import RetryPolicy
from ...domain.policy.transfer_policy import TransferPolicy
from .environment import get_env, load_environment_variables


class ApiSettings(BaseModel):
    """Remote API connection settings."""

    base_url: str = "https://api.audisto.com"
    timeout_seconds: float = 300.0

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable precedence."""
        load_environment_variables()

        env_url = get_env("AUDISTO_API_URL")
        if env_url is not None:
            data["base_url"] = env_url

        super().__init__(**data)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class TransferSettings(BaseModel):
    """Chunk transfer tuning."""

    initial_chunk_size: int = Field(default=10000, gt=0)
    retry_attempts: int = Field(default=5, ge=1)
    retry_delay_seconds: float = Field(default=10.0, ge=0)
    backoff_seconds: float = Field(default=30.0, ge=0)
    shrink_step: int = Field(default=1000, gt=0)
    timeout_threshold: int = Field(default=3, ge=1)
    smoothing_factor: float = Field(default=0.005, gt=0, le=1)
    initial_seconds_per_1000: float = Field(default=5.0, ge=0)

    def to_policy(self) -> TransferPolicy:
        """Build the domain TransferPolicy from these settings."""
        return TransferPolicy(
            initial_chunk_size=self.initial_chunk_size,
            backoff_seconds=self.backoff_seconds,
            shrink_step=self.shrink_step,
            timeout_threshold=self.timeout_threshold,
            retry=RetryPolicy.fixed(self.retry_attempts, self.retry_delay_seconds),
            smoothing_factor=self.smoothing_factor,
            initial_seconds_per_1000=self.initial_seconds_per_1000,
        )


class PathsSettings(BaseModel):
    """Path configuration settings."""

    checkpoint_suffix: str = ".audisto_"

    @field_validator("checkpoint_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """A suffix is required so the sidecar never equals the output path."""
        if not v:
            raise ValueError("checkpoint_suffix must be non-empty")
        return v


class Settings(BaseModel):
    """Main settings loaded from audisto.toml."""

    api: ApiSettings = Field(default_factory=ApiSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)
    paths: PathsSettings = Field(default_factory=PathsSettings)

    @classmethod
    def from_toml(cls, toml_path: Path | str = "audisto.toml") -> "Settings":
        """
        Load settings from audisto.toml with environment variable precedence.

        Args:
            toml_path: Path to audisto.toml file

        Returns:
            Settings instance (defaults if the file doesn't exist)
        """
        load_environment_variables()

        toml_path = Path(toml_path)

        if not toml_path.exists():
            return cls()

        with toml_path.open("rb") as f:
            data = tomllib.load(f)

        return cls(
            api=ApiSettings(**data.get("api", {})),
            transfer=TransferSettings(**data.get("transfer", {})),
            paths=PathsSettings(**data.get("paths", {})),
        )
