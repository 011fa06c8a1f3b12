"""Infrastructure errors — storage and serialisation failures."""

from __future__ import annotations

from typing import Any

from mp_eventsourcing.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """Infrastructure / I/O failure that is not a business rule violation."""

    default_code = "infrastructure_error"


class StorageUnavailableError(InfrastructureError):
    """The durable store could not be reached or failed mid-operation.

    Transient: eligible for external retry with backoff. An append that
    fails this way is indeterminate; re-read the stream version before
    retrying.
    """

    default_code = "storage_unavailable"
    retryable = True

    def __init__(
        self,
        resource: str,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message or f"Storage '{resource}' is unavailable", **kwargs)
        self.resource = resource


class SerializationError(InfrastructureError):
    """Failed to serialize or deserialize a payload."""

    default_code = "serialization_error"

    def __init__(
        self,
        message: str,
        *,
        payload_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.payload_type = payload_type


__all__ = [
    "InfrastructureError",
    "SerializationError",
    "StorageUnavailableError",
]
