"""Application services for orchestrating domain logic."""

from .retry import retry_call

__all__ = ["retry_call"]
