"""Tenacity retry policy for HTTP calls to external services.

Transient transport errors and 429/5xx responses are retried with jittered
exponential backoff. When the attempt budget is exhausted the last response is
returned (or the last exception re-raised) so callers keep a single error path.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx
import tenacity
from tenacity import RetryCallState, retry_if_exception, retry_if_result

LOGGER = logging.getLogger(__name__)

__all__ = ["RETRYABLE_STATUSES", "is_retryable", "build_retrying"]

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def is_retryable(
    *, status: Optional[int] = None, exception: Optional[BaseException] = None
) -> bool:
    """Return True when a response status or exception is worth another attempt."""

    if status is not None:
        return status in RETRYABLE_STATUSES
    if exception is not None:
        return isinstance(
            exception,
            (
                httpx.ConnectError,
                httpx.ReadError,
                httpx.WriteError,
                httpx.TimeoutException,
                httpx.RemoteProtocolError,
            ),
        )
    return False


def _result_predicate(value: Any) -> bool:
    status = getattr(value, "status_code", None)
    return status is not None and is_retryable(status=status)


def _exception_predicate(exception: BaseException) -> bool:
    return is_retryable(exception=exception)


def _return_last_result(retry_state: RetryCallState) -> Any:
    outcome = retry_state.outcome
    assert outcome is not None
    return outcome.result()


def _log_before_sleep(retry_state: RetryCallState) -> None:
    next_action = retry_state.next_action
    wait_s = getattr(next_action, "sleep", 0.0) if next_action is not None else 0.0
    LOGGER.warning(
        "retry attempt=%d wait_ms=%d elapsed_s=%.1f",
        retry_state.attempt_number,
        int(wait_s * 1000),
        retry_state.seconds_since_start or 0.0,
    )


def build_retrying(
    max_attempts: int = 3,
    *,
    multiplier: float = 0.5,
    max_wait_s: float = 8.0,
    sleep: Callable[[float], None] = time.sleep,
) -> tenacity.Retrying:
    """Build a Tenacity controller for idempotent HTTP requests.

    Args:
        max_attempts: Total attempts including the first one
        multiplier: Backoff multiplier for ``wait_random_exponential``
        max_wait_s: Upper bound on a single backoff
        sleep: Sleep function (tests pass a no-op)
    """
    return tenacity.Retrying(
        retry=retry_if_exception(_exception_predicate) | retry_if_result(_result_predicate),
        stop=tenacity.stop_after_attempt(max_attempts),
        wait=tenacity.wait_random_exponential(multiplier=multiplier, max=max_wait_s),
        sleep=sleep,
        before_sleep=_log_before_sleep,
        retry_error_callback=_return_last_result,
        reraise=True,
    )
