"""
Retry with capped exponential backoff and a total time budget
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from ..exceptions import RetryTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and for how long, an operation is re-attempted"""
    interval: float = 0.1
    max_interval: float = 0.5
    timeout: float = 5.0
    max_tries: int = 3
    backoff: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            interval=settings.retry_interval,
            max_interval=settings.retry_max_interval,
            timeout=settings.retry_timeout,
            max_tries=settings.retry_max_tries,
        )

    def delay(self, attempt: int) -> float:
        """Wait before the attempt following `attempt` (0-based)"""
        return min(self.interval * (self.backoff ** attempt), self.max_interval)


class _AttemptFailed(Exception):
    """Carries an error raised by the operation itself"""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


async def _run_attempt(operation: Callable[[], Awaitable[T]]) -> T:
    try:
        return await operation()
    except Exception as e:
        raise _AttemptFailed(e) from e


async def retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """Run `operation` until it succeeds or the policy is exhausted.

    Attempts run one after another. The last failure is re-raised once
    `max_tries` attempts failed; `RetryTimeoutError` is raised when the
    total `timeout` runs out first.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + policy.timeout
    max_tries = max(policy.max_tries, 1)
    last_error: Optional[Exception] = None

    for attempt in range(max_tries):
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise RetryTimeoutError(policy.timeout, attempt) from last_error

        try:
            return await asyncio.wait_for(_run_attempt(operation), timeout=remaining)
        except _AttemptFailed as failed:
            last_error = failed.error
        except asyncio.TimeoutError as e:
            raise RetryTimeoutError(policy.timeout, attempt + 1) from e

        if attempt == max_tries - 1:
            raise last_error

        wait_time = min(policy.delay(attempt), max(deadline - loop.time(), 0))
        logger.warning("Retrying operation",
                       attempt=attempt + 1,
                       wait_time=wait_time,
                       error=str(last_error))
        await asyncio.sleep(wait_time)
