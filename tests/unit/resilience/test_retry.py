"""Unit tests for resilience retry – backoff, jitter, RetryPolicy, tenacity adapter."""

from __future__ import annotations

import asyncio

import pytest
import tenacity

from mp_eventsourcing.kernel.errors import ConcurrencyConflictError, StorageUnavailableError
from mp_eventsourcing.resilience.retry import (
    ConstantBackoff,
    ExponentialBackoff,
    FullJitter,
    NoJitter,
    RetryPolicy,
    TenacityRetryPolicy,
)


def _conflict() -> ConcurrencyConflictError:
    return ConcurrencyConflictError("ledger", "a", expected=1, actual=2)


class Flaky:
    """Fails with *error* for the first *failures* calls, then returns ``"ok"``."""

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


# ---------------------------------------------------------------------------
# Backoff / jitter
# ---------------------------------------------------------------------------


class TestBackoff:
    def test_constant(self) -> None:
        assert [ConstantBackoff(0.3).compute(n) for n in (1, 2, 5)] == [0.3, 0.3, 0.3]

    def test_exponential_doubles_and_caps(self) -> None:
        backoff = ExponentialBackoff(base_delay=0.1, max_delay=0.5)
        assert [backoff.compute(n) for n in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.4, 0.5])

    def test_full_jitter_within_bounds(self) -> None:
        jitter = FullJitter()
        assert all(0 <= jitter.apply(1.0) <= 1.0 for _ in range(50))

    def test_no_jitter(self) -> None:
        assert NoJitter().apply(0.7) == 0.7


# ---------------------------------------------------------------------------
# RetryPolicy
# ---------------------------------------------------------------------------


def _policy(max_attempts: int, retryable: tuple[type[Exception], ...] = (Exception,)) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        backoff=ConstantBackoff(0),
        jitter=NoJitter(),
        retryable_exceptions=retryable,
    )


class TestRetryPolicy:
    def test_succeeds_after_transient_failures(self) -> None:
        func = Flaky(2, _conflict())
        assert asyncio.run(_policy(3).execute_async(func)) == "ok"
        assert func.calls == 3

    def test_gives_up_after_max_attempts(self) -> None:
        func = Flaky(5, _conflict())
        with pytest.raises(ConcurrencyConflictError):
            asyncio.run(_policy(2).execute_async(func))
        assert func.calls == 2

    def test_non_retryable_propagates_immediately(self) -> None:
        func = Flaky(1, StorageUnavailableError("events", "down"))
        with pytest.raises(StorageUnavailableError):
            asyncio.run(_policy(5, (ConcurrencyConflictError,)).execute_async(func))
        assert func.calls == 1

    def test_max_attempts_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


# ---------------------------------------------------------------------------
# TenacityRetryPolicy
# ---------------------------------------------------------------------------


class TestTenacityRetryPolicy:
    def test_retries_until_success(self) -> None:
        func = Flaky(2, RuntimeError("read model busy"))
        policy = TenacityRetryPolicy(max_attempts=3, wait=tenacity.wait_none())
        assert asyncio.run(policy.execute_async(func)) == "ok"
        assert func.calls == 3
        assert policy.max_attempts == 3

    def test_reraises_last_error(self) -> None:
        func = Flaky(10, RuntimeError("still busy"))
        policy = TenacityRetryPolicy(max_attempts=2, wait=tenacity.wait_none())
        with pytest.raises(RuntimeError, match="still busy"):
            asyncio.run(policy.execute_async(func))
        assert func.calls == 2

    def test_wraps_in_retry_error_when_not_reraising(self) -> None:
        policy = TenacityRetryPolicy(max_attempts=1, wait=tenacity.wait_none(), reraise=False)
        with pytest.raises(tenacity.RetryError):
            asyncio.run(policy.execute_async(Flaky(1, RuntimeError("x"))))

    def test_custom_retry_predicate(self) -> None:
        func = Flaky(1, KeyError("k"))
        policy = TenacityRetryPolicy(
            max_attempts=3,
            wait=tenacity.wait_none(),
            retry=tenacity.retry_if_exception_type(RuntimeError),
        )
        with pytest.raises(KeyError):
            asyncio.run(policy.execute_async(func))
        assert func.calls == 1

    def test_before_sleep_hook_forwarded(self) -> None:
        attempts: list[int] = []
        policy = TenacityRetryPolicy(
            max_attempts=3,
            wait=tenacity.wait_none(),
            before_sleep=lambda state: attempts.append(state.attempt_number),
        )
        asyncio.run(policy.execute_async(Flaky(2, RuntimeError("x"))))
        assert attempts == [1, 2]
