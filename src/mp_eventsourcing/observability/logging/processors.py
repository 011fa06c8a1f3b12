"""Observability – structlog processors and get_logger helper."""
from __future__ import annotations

from typing import Any

import structlog


class StreamContextProcessor:
    """structlog processor that renders stream identity as one ``stream`` field.

    Log calls in this library pass ``aggregate_type`` and ``aggregate_id``
    separately; this adds ``stream="<type>-<id>"`` so log searches can match
    on a single key.

    Usage::

        structlog.configure(processors=[StreamContextProcessor(), ...])
    """

    def __call__(
        self,
        logger: Any,           # noqa: ARG002
        method_name: str,      # noqa: ARG002
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        aggregate_type = event_dict.get("aggregate_type")
        aggregate_id = event_dict.get("aggregate_id")
        if aggregate_type is not None and aggregate_id is not None:
            event_dict.setdefault("stream", f"{aggregate_type}-{aggregate_id}")
        return event_dict


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Return a bound structlog logger.

    Parameters
    ----------
    name:
        Logger name (typically ``__name__`` of the calling module).
    **initial_values:
        Key-value pairs to bind on the returned logger.
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


__all__ = ["StreamContextProcessor", "get_logger"]
