"""Retry logic for out-of-band upstream fetches using tenacity.

Streamed completions are billable and are never retried.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import httpx
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import LLMProviderError

F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_ERRORS = (httpx.TransportError, TimeoutError, ConnectionError)


def with_fetch_retry(
    source_name: str,
    max_retries: int = 3,
) -> Callable[[F], F]:
    """Decorator to add retry logic to idempotent upstream fetches.

    Args:
        source_name: Name of the upstream source for error messages
        max_retries: Maximum number of attempts

    Returns:
        Decorated function with retry logic

    """

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{source_name} attempt {retry_state.attempt_number}: {retry_state.outcome.exception() if retry_state.outcome else 'Unknown error'}",
            ),
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except RETRYABLE_ERRORS:
                # Tenacity will handle retries
                raise
            except Exception as e:
                logger.error(f"{source_name} fetch error: {e}")
                raise LLMProviderError(f"{source_name} fetch error: {e}") from e

        return wrapper  # type: ignore[return-value,no-any-return]

    return decorator
