"""Retry policy with exponential backoff for data-source calls."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Bounded retry with exponential backoff.

    ``sleep`` is injectable so tests can run on simulated time, and
    ``backoff`` may replace the default ``base * multiplier ** (n - 1)``
    schedule. Only exceptions listed in ``retry_on`` are retried; anything
    else propagates immediately.
    """

    max_attempts: int = 3
    base_delay: float = 3.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    backoff: Optional[Callable[[int], float]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.backoff is not None:
            return self.backoff(attempt)
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        """Run ``operation`` until it succeeds or attempts are exhausted.

        ``on_retry`` is called with the failed attempt number and its error
        before each backoff. The last retryable error is re-raised once every
        attempt has failed.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "All retry attempts failed",
                        operation=description,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt failed, retrying",
                    operation=description,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    retry_in=delay,
                    error=str(e),
                )
                if on_retry is not None:
                    on_retry(attempt, e)
                await self.sleep(delay)
                attempt += 1
