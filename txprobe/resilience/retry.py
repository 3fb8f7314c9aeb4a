"""Retry for async operations, built on tenacity.

The pool wraps its connect step with `retry` so that a database that is still
starting up (refused connections, ``CannotConnectNowError``) is waited for
instead of failing the first ``ainitialize()``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING, TypeAlias

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..config.retry import RetryConfig
from ..core.types import P, R
from ..logger import get_logger

if TYPE_CHECKING:
    from tenacity.retry import retry_base

logger = get_logger(__name__)

BeforeSleep: TypeAlias = Callable[[RetryCallState], None]


def log_before_sleep(retry_state: RetryCallState) -> None:
    """Log the failed attempt and the upcoming backoff."""
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        "Retrying after failure",
        fn=getattr(retry_state.fn, "__qualname__", repr(retry_state.fn)),
        attempt=retry_state.attempt_number,
        sleep_s=retry_state.upcoming_sleep,
        error_type=type(error).__name__ if error is not None else None,
        error=str(error) if error is not None else None,
    )


def retry_condition(config: RetryConfig) -> retry_base:
    """Retry on ``retry_on_exceptions`` (any exception when unset), never on ``never_retry_on``."""
    condition: retry_base = retry_if_exception_type(config.retry_on_exceptions or Exception)
    if config.never_retry_on:
        condition = condition & retry_if_not_exception_type(config.never_retry_on)
    return condition


def async_retrying(config: RetryConfig, before_sleep: BeforeSleep | None = log_before_sleep) -> AsyncRetrying:
    # NOTE: Full Jitter, https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
    return AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_random_exponential(min=config.wait_min, max=config.wait_max),
        retry=retry_condition(config),
        before_sleep=before_sleep,
        reraise=config.reraise,
    )


def retry(
    config: RetryConfig | None = None,
    *,
    before_sleep: BeforeSleep | None = log_before_sleep,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorate a coroutine function so matching failures are retried with backoff.

    Every call gets a fresh attempt counter. With ``reraise=True`` the last
    error is raised as-is once attempts run out; otherwise tenacity's
    ``RetryError`` is raised.
    """
    retry_config = config or RetryConfig()

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            return await async_retrying(retry_config, before_sleep)(func, *args, **kwargs)

        return wrapper

    return decorator
