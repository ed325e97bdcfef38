"""Retry decorators for Redis-backed store and connection operations."""

from __future__ import annotations

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from deadletter.core.exceptions import StoreConflictError
from deadletter.core.logging import get_logger

logger = get_logger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts with context."""
    logger.warning(
        "retry_attempt",
        function=getattr(retry_state.fn, "__name__", None),
        attempt=retry_state.attempt_number,
        wait=getattr(retry_state.next_action, "sleep", None),
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


def retry_store_write(max_attempts: int = 3):
    """Retry decorator for dead letter record replacement.

    A replacement is remove-then-add; when another writer re-adds the same id
    in between, arq refuses the add and we go again so the last writer wins.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential_jitter(initial=0.05, max=1, jitter=0.1),
        retry=retry_if_exception_type(StoreConflictError),
        before_sleep=_log_retry,
        reraise=True,
    )


def retry_connection(max_attempts: int = 5):
    """Retry decorator for the startup connectivity check."""
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential_jitter(initial=0.5, max=10, jitter=1),
        retry=retry_if_exception_type(
            (ConnectionError, TimeoutError, RedisConnectionError, RedisTimeoutError),
        ),
        before_sleep=_log_retry,
        reraise=True,
    )
