"""Retry helper shared by the row-count probe and chunk fetches."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from ...domain.errors import RetryExhaustedError, TransportError
from ...domain.policy.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_call(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (TransportError,),
    on_failure: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """
    Invoke operation until it succeeds or the attempt budget is spent.

    Only exceptions listed in retry_on are retried; anything else propagates
    immediately.

    Args:
        operation: Zero-argument callable to invoke
        policy: RetryPolicy with max_attempts and delay strategy
        retry_on: Exception types that count as a failed attempt
        on_failure: Called with (attempt, error) after every failed attempt
        sleep: Sleep function (injectable for tests)
        description: Name of the operation for log messages

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: If all attempts fail (last error chained as __cause__)
    """
    attempt = 1
    while True:
        try:
            return operation()
        except retry_on as e:
            if on_failure is not None:
                on_failure(attempt, e)

            if attempt >= policy.max_attempts:
                logger.error(
                    f"{description}: all {policy.max_attempts} attempts failed: {e}",
                    extra={"max_attempts": policy.max_attempts},
                )
                raise RetryExhaustedError(policy.max_attempts, e) from e

            delay = policy.delay(attempt)
            logger.warning(
                f"{description} attempt {attempt}/{policy.max_attempts} failed, retrying in {delay:.1f}s: {e}",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts, "error": str(e)},
            )
            sleep(delay)
            attempt += 1
