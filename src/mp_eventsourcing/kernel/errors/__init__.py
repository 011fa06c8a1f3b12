"""Kernel error hierarchy — public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError                          (domain.py)
    │   ├── InvariantViolationError
    │   │   ├── ReplayDeterminismViolationError
    │   │   └── SnapshotAheadOfStreamError
    │   ├── ValidationError
    │   ├── NotFoundError
    │   │   └── UnknownStreamError
    │   └── ConflictError
    │       └── ConcurrencyConflictError
    ├── ApplicationError                     (application.py)
    │   └── ProjectionHaltedError
    └── InfrastructureError                  (infrastructure.py)
        ├── StorageUnavailableError
        └── SerializationError
"""

from mp_eventsourcing.kernel.errors.application import ApplicationError, ProjectionHaltedError
from mp_eventsourcing.kernel.errors.base import BaseError
from mp_eventsourcing.kernel.errors.domain import (
    ConcurrencyConflictError,
    ConflictError,
    DomainError,
    InvariantViolationError,
    NotFoundError,
    ReplayDeterminismViolationError,
    SnapshotAheadOfStreamError,
    UnknownStreamError,
    ValidationError,
)
from mp_eventsourcing.kernel.errors.infrastructure import (
    InfrastructureError,
    SerializationError,
    StorageUnavailableError,
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
