"""Observability – structured logging."""
from mp_eventsourcing.observability.logging import JsonLoggerFactory, StreamContextProcessor, get_logger

__all__ = ["JsonLoggerFactory", "StreamContextProcessor", "get_logger"]
