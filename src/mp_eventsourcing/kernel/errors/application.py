"""Application-layer errors — failures at use-case / projection level."""

from __future__ import annotations

from typing import Any

from mp_eventsourcing.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """Cross-cutting application-layer concern."""

    default_code = "application_error"


class ProjectionHaltedError(ApplicationError):
    """A projector stopped advancing a stream after its handler kept failing.

    The failing event is never skipped; the stream stays halted until an
    operator resumes it.
    """

    default_code = "projection_halted"

    def __init__(
        self,
        projector_name: str,
        stream: str,
        version: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"Projector '{projector_name}' halted on stream '{stream}' at version {version}",
            detail={"projector": projector_name, "stream": stream, "version": version},
            **kwargs,
        )
        self.projector_name = projector_name
        self.stream = stream
        self.version = version


__all__ = ["ApplicationError", "ProjectionHaltedError"]
