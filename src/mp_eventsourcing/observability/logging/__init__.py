"""Observability – structured logging helpers built on structlog."""
from mp_eventsourcing.observability.logging.factory import JsonLoggerFactory
from mp_eventsourcing.observability.logging.processors import StreamContextProcessor, get_logger

__all__ = [
    "JsonLoggerFactory",
    "StreamContextProcessor",
    "get_logger",
]
