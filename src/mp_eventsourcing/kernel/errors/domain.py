"""Domain errors — business rule, invariant and stream consistency violations."""

from __future__ import annotations

from typing import Any

from mp_eventsourcing.kernel.errors.base import BaseError


class DomainError(BaseError):
    """Raised when a domain rule / invariant is violated."""

    default_code = "domain_error"


class InvariantViolationError(DomainError):
    """An aggregate or store invariant was violated."""

    default_code = "invariant_violation"


class ValidationError(DomainError):
    """Input data does not meet validation rules.

    ``errors`` is a list of field-level validation failures.
    """

    default_code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors: list[dict[str, Any]] = errors or []

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base["errors"] = self.errors
        return base


class NotFoundError(DomainError):
    """The requested resource does not exist."""

    default_code = "not_found"

    def __init__(
        self,
        resource: str,
        identifier: Any = None,
        **kwargs: Any,
    ) -> None:
        msg = f"{resource} not found"
        if identifier is not None:
            msg = f"{resource} '{identifier}' not found"
        super().__init__(msg, **kwargs)
        self.resource = resource
        self.identifier = identifier


class UnknownStreamError(NotFoundError):
    """A domain operation expected an existing stream but none was found.

    ``EventStore.load`` never raises this: an unknown stream loads as empty.
    """

    default_code = "unknown_stream"

    def __init__(self, aggregate_type: str, aggregate_id: str, **kwargs: Any) -> None:
        super().__init__(aggregate_type, aggregate_id, **kwargs)
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id


class ConflictError(DomainError):
    """The operation conflicts with existing state."""

    default_code = "conflict"


class ConcurrencyConflictError(ConflictError):
    """The stream's current version differs from the writer's expected version.

    Retryable: the caller must reload the aggregate and re-apply the command.
    """

    default_code = "concurrency_conflict"
    retryable = True

    def __init__(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected: int,
        actual: int | None,
        **kwargs: Any,
    ) -> None:
        found = "unknown" if actual is None else str(actual)
        super().__init__(
            f"Concurrency conflict on stream '{aggregate_type}-{aggregate_id}': "
            f"expected version {expected}, found {found}",
            detail={
                "aggregate_type": aggregate_type,
                "aggregate_id": aggregate_id,
                "expected": expected,
                "actual": actual,
            },
            **kwargs,
        )
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        self.expected = expected
        self.actual = actual


class ReplayDeterminismViolationError(InvariantViolationError):
    """Two replays of the same stream disagree, or the stream itself is corrupt.

    Indicates a non-deterministic ``apply`` function or damaged data. Never
    tolerated silently.
    """

    default_code = "replay_determinism_violation"


class SnapshotAheadOfStreamError(InvariantViolationError):
    """A snapshot was about to be written past the last appended version."""

    default_code = "snapshot_ahead_of_stream"

    def __init__(
        self,
        aggregate_type: str,
        aggregate_id: str,
        snapshot_version: int,
        stream_version: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"Snapshot version {snapshot_version} exceeds stream "
            f"'{aggregate_type}-{aggregate_id}' version {stream_version}",
            detail={
                "aggregate_type": aggregate_type,
                "aggregate_id": aggregate_id,
                "snapshot_version": snapshot_version,
                "stream_version": stream_version,
            },
            **kwargs,
        )
        self.snapshot_version = snapshot_version
        self.stream_version = stream_version


__all__ = [
    "ConcurrencyConflictError",
    "ConflictError",
    "DomainError",
    "InvariantViolationError",
    "NotFoundError",
    "ReplayDeterminismViolationError",
    "SnapshotAheadOfStreamError",
    "UnknownStreamError",
    "ValidationError",
]
