"""
Bounded exponential-backoff retry for side-effect-free calls.

Only reads (ledger evaluate, content get) go through here. Submits are
never retried: a timed-out submit may already have committed.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from agritrace.observability.logger import get_logger
from agritrace.observability.metrics import increment_counter, retries_total

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for read retries."""

    max_attempts: int = 3
    base_delay: float = 0.2  # seconds
    max_delay: float = 2.0  # seconds
    jitter: float = 0.0  # random jitter factor

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay before the retry following ``attempt`` (1-based), capped at max_delay."""
    delay = min(policy.base_delay * (2 ** (attempt - 1)), policy.max_delay)
    if policy.jitter:
        delay += delay * policy.jitter * random.random()
    return delay


async def retry_read(
    call: Callable[[], Awaitable[T]],
    *,
    operation: str,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``call`` until it succeeds, fails with a non-retryable error, or
    ``policy.max_attempts`` is reached.

    Args:
        call: Zero-argument coroutine factory; invoked once per attempt
        operation: Name used in logs and metrics
        policy: Attempt and delay bounds
        retry_on: Exception types considered transient
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The first successful result

    Raises:
        The last transient exception once attempts are exhausted, or any
        non-transient exception immediately
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await call()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                increment_counter(retries_total, 1, operation=operation, status="exhausted")
                logger.error(
                    f"All {policy.max_attempts} attempts failed for {operation}: {e}",
                    extra={"operation": operation, "attempts": attempt},
                )
                raise

            delay = backoff_delay(attempt, policy)
            increment_counter(retries_total, 1, operation=operation, status="retrying")
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed for {operation}: {e}. "
                f"Retrying in {delay:.2f}s",
                extra={"operation": operation, "attempt": attempt},
            )
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
