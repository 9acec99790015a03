"""Classification of API status codes into transfer-loop actions."""

from __future__ import annotations

from enum import Enum

from ..errors import (
    AccessDeniedError,
    ClientFatalError,
    CrawlNotFoundError,
    UnexpectedStatusError,
)


class StatusAction(str, Enum):
    """What the transfer loop does with a response."""

    PROCEED = "proceed"    # parse and append rows
    THROTTLE = "throttle"  # back off, retry, not an error
    SHRINK = "shrink"      # gateway timeout: back off, count towards a chunk-size shrink
    RETRY = "retry"        # transient server error: back off, retry
    FATAL = "fatal"        # abort the session


STATUS_ACTIONS: dict[int, StatusAction] = {
    200: StatusAction.PROCEED,
    429: StatusAction.THROTTLE,
    403: StatusAction.FATAL,
    404: StatusAction.FATAL,
    504: StatusAction.SHRINK,
}

FATAL_ERRORS: dict[int, type[ClientFatalError]] = {
    403: AccessDeniedError,
    404: CrawlNotFoundError,
}


def classify_status(status_code: int) -> StatusAction:
    """
    Look up the action for a status code.

    Codes missing from STATUS_ACTIONS fall back by class: 5xx retries, 4xx is
    fatal. Anything else (1xx, other 2xx, 3xx) is unexpected and also fatal,
    since its body cannot be trusted as a chunk.
    """
    action = STATUS_ACTIONS.get(status_code)
    if action is not None:
        return action
    if 500 <= status_code < 600:
        return StatusAction.RETRY
    return StatusAction.FATAL


def fatal_error_for(status_code: int) -> ClientFatalError:
    """Build the user-facing error for a FATAL status."""
    error_cls = FATAL_ERRORS.get(status_code)
    if error_cls is not None:
        return error_cls(status_code)
    return UnexpectedStatusError(status_code)


def counts_as_error(action: StatusAction) -> bool:
    """Throttling is expected behaviour and stays out of the error counter."""
    return action not in (StatusAction.PROCEED, StatusAction.THROTTLE)
