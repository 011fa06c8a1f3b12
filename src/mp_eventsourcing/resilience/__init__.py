"""Resilience – retry policies."""
from mp_eventsourcing.resilience.retry import (
    ExponentialBackoff,
    FullJitter,
    NoJitter,
    RetryPolicy,
    TenacityRetryPolicy,
)

__all__ = ["ExponentialBackoff", "FullJitter", "NoJitter", "RetryPolicy", "TenacityRetryPolicy"]
