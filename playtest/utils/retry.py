"""
Retry utilities with exponential backoff
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MARKERS = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnrefused",
    "socket",
    "cdp",
    "transport closed",
)


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error is transient (timeout, network or connection)."""
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


def backoff_delay_ms(attempt: int, base_delay_ms: int, max_delay_ms: int = 30000) -> int:
    """Delay before retrying after 0-indexed attempt `attempt`."""
    return min(base_delay_ms * (2 ** attempt), max_delay_ms)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay_ms: int,
    max_delay_ms: int = 30000,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException, int], None]] = None,
) -> T:
    """
    Run an async operation, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total attempts including the first one
        base_delay_ms: Delay after the first failure
        max_delay_ms: Upper bound for any single delay
        should_retry: Predicate deciding whether an error is retryable.
            Defaults to is_retryable_error.
        on_retry: Called with (attempt, error, delay_ms) before each sleep

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    classify = should_retry or is_retryable_error

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not classify(e):
                raise
            if attempt == max_attempts - 1:
                raise

            delay = backoff_delay_ms(attempt, base_delay_ms, max_delay_ms)
            logger.debug(f"Retry attempt {attempt + 1}/{max_attempts} after {delay}ms: {e}")
            if on_retry:
                on_retry(attempt, e, delay)
            await asyncio.sleep(delay / 1000)

    raise AssertionError("unreachable")
