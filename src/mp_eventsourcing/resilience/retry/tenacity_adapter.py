"""Resilience – TenacityRetryPolicy adapter."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import tenacity

T = TypeVar("T")


class TenacityRetryPolicy:
    """Retry policy backed by the ``tenacity`` library.

    Exposes the same ``execute_async`` interface as
    :class:`~mp_eventsourcing.resilience.retry.policy.RetryPolicy` so the two
    are interchangeable.

    Parameters
    ----------
    max_attempts:
        Maximum number of call attempts (including the first call).
    wait:
        A ``tenacity`` wait strategy.  Defaults to
        ``wait_exponential(multiplier=backoff_base, max=backoff_max)``.
    retry:
        A ``tenacity`` retry predicate.  Defaults to retrying on any
        :class:`Exception`.
    reraise:
        Re-raise the last exception once attempts are exhausted instead of
        wrapping it in :class:`tenacity.RetryError`.
    kwargs:
        Forwarded to :class:`tenacity.AsyncRetrying` (e.g. ``before_sleep``).

    Example
    -------
    ::

        policy = TenacityRetryPolicy(max_attempts=5, backoff_base=0.2, backoff_max=5)
        await policy.execute_async(lambda: handler(envelope, read_model))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        *,
        backoff_base: float = 0.1,
        backoff_max: float = 5.0,
        wait: Any = None,
        retry: Any = None,
        reraise: bool = True,
        **kwargs: Any,
    ) -> None:
        self._max_attempts = max_attempts
        self._wait = wait or tenacity.wait_exponential(multiplier=backoff_base, max=backoff_max)
        self._retry = retry or tenacity.retry_if_exception_type(Exception)
        self._reraise = reraise
        self._extra_kwargs = kwargs

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def _build_async_retrying(self) -> tenacity.AsyncRetrying:
        return tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=self._retry,
            reraise=self._reraise,
            **self._extra_kwargs,
        )

    async def execute_async(self, func: Callable[[], Awaitable[T]]) -> T:
        """Execute *func* asynchronously with tenacity retry."""
        async for attempt in self._build_async_retrying():
            with attempt:
                result = await func()
        return result  # type: ignore[return-value]


__all__ = ["TenacityRetryPolicy"]
