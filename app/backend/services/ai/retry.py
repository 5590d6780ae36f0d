"""
Bounded retry with exponential backoff for a single provider call.

The retry layer never switches providers; that is the orchestrator's job.
It only smooths over transient blips from one provider.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Collection, TypeVar

# Handle both package imports and standalone imports
try:
    from ...models import FailureClass
except ImportError:
    from models import FailureClass

from .exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Credentials will not fix themselves mid-loop
DEFAULT_NON_RETRYABLE: frozenset[FailureClass] = frozenset(
    {FailureClass.UNAUTHENTICATED}
)


def backoff_delay_ms(base_delay_ms: int, attempt_index: int) -> int:
    """Delay before retry number attempt_index + 1 (0-based)."""
    return base_delay_ms * (2**attempt_index)


async def with_retry(
    attempt: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    non_retryable: Collection[FailureClass] = DEFAULT_NON_RETRYABLE,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call attempt until it succeeds or the retry budget is spent.

    Args:
        attempt: Zero-argument coroutine factory performing one provider call.
        max_attempts: Total calls allowed, including the first.
        base_delay_ms: Backoff before the first retry; doubles each time.
        non_retryable: Failure classes rethrown immediately.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        Whatever attempt returns on its first success.

    Raises:
        ProviderError: The last failure once retries are exhausted, or the
            first failure whose class is non-retryable.
    """
    max_attempts = max(1, max_attempts)
    last_error: ProviderError | None = None

    for attempt_index in range(max_attempts):
        try:
            return await attempt()
        except ProviderError as e:
            last_error = e
            if e.failure_class in non_retryable:
                logger.info(
                    "Not retrying %s failure from %s",
                    e.failure_class.value,
                    e.provider_id or "provider",
                )
                raise

            if attempt_index + 1 >= max_attempts:
                break

            delay_ms = backoff_delay_ms(base_delay_ms, attempt_index)
            logger.warning(
                "Attempt %d/%d failed (%s), retrying in %d ms: %s",
                attempt_index + 1,
                max_attempts,
                e.failure_class.value,
                delay_ms,
                e.message,
            )
            await sleep(delay_ms / 1000)

    assert last_error is not None
    raise last_error
