"""Logging setup for download sessions: stderr only, one correlation ID per session."""

import logging
import sys
import uuid
from contextvars import ContextVar

# Copied into the progress thread, so every record of a session shares it
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

HTTP_LOGGERS = [
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.http2",
    "httpcore.connection",
]


def get_correlation_id() -> str:
    """Return the session's correlation ID, generating a UUID on first use."""
    corr_id = correlation_id_var.get()
    if corr_id is None:
        corr_id = str(uuid.uuid4())
        correlation_id_var.set(corr_id)
    return corr_id


def set_correlation_id(corr_id: str) -> None:
    """Bind a correlation ID to the current context (the CLI does this per invocation)."""
    correlation_id_var.set(corr_id)


class CorrelationIDFilter(logging.Filter):
    """Stamps correlation_id on every record passing the stderr handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()  # type: ignore[attr-defined]
        return True


def configure_logging(level: int = logging.INFO, verbose: bool = False) -> None:
    """
    Configure structured logging with correlation ID support.

    Logs go to stderr: stdout may be carrying the downloaded TSV rows.

    Args:
        level: Logging level (default: INFO)
        verbose: If True, show HTTP logs at INFO level. If False, suppress HTTP logs to DEBUG.
    """
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s correlation_id=%(correlation_id)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIDFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request line at INFO; keep that out of the way unless verbose
    http_level = logging.INFO if verbose else logging.WARNING
    for logger_name in HTTP_LOGGERS:
        logging.getLogger(logger_name).setLevel(http_level)
