"""Resilience – RetryPolicy."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from mp_eventsourcing.observability.logging import get_logger
from mp_eventsourcing.resilience.retry.backoff import BackoffStrategy, ExponentialBackoff
from mp_eventsourcing.resilience.retry.jitter import FullJitter, JitterStrategy

T = TypeVar("T")
logger = get_logger(__name__)


class RetryPolicy:
    """Async retry policy with pluggable backoff and jitter.

    ``max_attempts`` counts every call, including the first one.  Only
    exceptions matching *retryable_exceptions* are retried; anything else
    propagates immediately.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: BackoffStrategy | None = None,
        jitter: JitterStrategy | None = None,
        retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or ExponentialBackoff()
        self.jitter = jitter or FullJitter()
        self.retryable_exceptions = retryable_exceptions

    def _should_retry(self, exc: Exception) -> bool:
        return isinstance(exc, self.retryable_exceptions)

    async def execute_async(self, func: Callable[[], Awaitable[T]]) -> T:
        """Await *func* until it succeeds or attempts are exhausted."""
        attempt = 1
        while True:
            try:
                return await func()
            except Exception as exc:
                if not self._should_retry(exc) or attempt >= self.max_attempts:
                    raise
                delay = self.jitter.apply(self.backoff.compute(attempt))
                logger.debug("retry.scheduled", attempt=attempt, delay=round(delay, 4), error=repr(exc))
                await asyncio.sleep(delay)
                attempt += 1


__all__ = ["RetryPolicy"]
