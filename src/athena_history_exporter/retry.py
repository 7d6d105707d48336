"""Retry combinator for throttled Athena calls.

Athena rejects bursts of API calls with ``ThrottlingException`` (or
``TooManyRequestsException``). Those are the only failures retried here:
forever, with an exponential wait of ``min(2 ** (attempt - 1), 16)`` seconds
before each retry. Any other exception propagates on the first occurrence.

The attempt counter is local to one `retry_throttling` call, so every logical
request starts again from a one second wait.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from botocore.exceptions import ClientError
from tenacity import RetryCallState, Retrying, retry_if_exception, wait_exponential

__all__ = ["retry_throttling", "is_throttling", "MAX_RETRY_WAIT_SECONDS"]

T = TypeVar("T")

MAX_RETRY_WAIT_SECONDS = 16
THROTTLING_ERROR_CODES = frozenset({"ThrottlingException", "TooManyRequestsException"})

logger = logging.getLogger(__name__)


def is_throttling(error: BaseException) -> bool:
    """Return True when ``error`` is an AWS rate-limiting rejection."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        return code in THROTTLING_ERROR_CODES
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    logger.debug(
        "Throttled (attempt %d); retrying in %.0fs",
        retry_state.attempt_number,
        retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def retry_throttling(
    operation: Callable[[], T],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` until it succeeds or fails with a non-throttling error.

    Args:
        operation: Zero-argument callable performing one AWS request.
        sleep: Blocking sleep used between attempts (injectable for tests).

    Returns:
        Whatever ``operation`` returns on its first non-throttled attempt.
    """
    retrying = Retrying(
        retry=retry_if_exception(is_throttling),
        wait=wait_exponential(multiplier=1, exp_base=2, max=MAX_RETRY_WAIT_SECONDS),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(operation)
