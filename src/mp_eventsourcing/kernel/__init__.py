"""Kernel – framework-agnostic building blocks (errors, time)."""

from mp_eventsourcing.kernel.errors import (
    ApplicationError,
    BaseError,
    ConcurrencyConflictError,
    ConflictError,
    DomainError,
    InfrastructureError,
    InvariantViolationError,
    NotFoundError,
    ProjectionHaltedError,
    ReplayDeterminismViolationError,
    SerializationError,
    SnapshotAheadOfStreamError,
    StorageUnavailableError,
    UnknownStreamError,
    ValidationError,
)

__all__ = [
    "ApplicationError",
    "BaseError",
    "ConcurrencyConflictError",
    "ConflictError",
    "DomainError",
    "InfrastructureError",
    "InvariantViolationError",
    "NotFoundError",
    "ProjectionHaltedError",
    "ReplayDeterminismViolationError",
    "SerializationError",
    "SnapshotAheadOfStreamError",
    "StorageUnavailableError",
    "UnknownStreamError",
    "ValidationError",
]
