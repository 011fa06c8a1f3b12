"""Resilience – retry with configurable backoff and jitter strategies."""
from mp_eventsourcing.resilience.retry.backoff import BackoffStrategy, ConstantBackoff, ExponentialBackoff
from mp_eventsourcing.resilience.retry.jitter import FullJitter, JitterStrategy, NoJitter
from mp_eventsourcing.resilience.retry.policy import RetryPolicy
from mp_eventsourcing.resilience.retry.tenacity_adapter import TenacityRetryPolicy

__all__ = [
    "BackoffStrategy", "ConstantBackoff", "ExponentialBackoff",
    "FullJitter", "JitterStrategy", "NoJitter",
    "RetryPolicy", "TenacityRetryPolicy",
]
