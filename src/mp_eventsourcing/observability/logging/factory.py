"""Observability – JsonLoggerFactory."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import structlog

from mp_eventsourcing.observability.logging.processors import StreamContextProcessor

if TYPE_CHECKING:
    from mp_eventsourcing.config.settings import EventSourcingSettings


class JsonLoggerFactory:
    """Configure structlog to render through the stdlib ``logging`` tree."""

    @staticmethod
    def configure(level: int | str = logging.INFO, json: bool = True) -> None:
        """
        Parameters
        ----------
        level:
            Root log level, as an int or a level name (``"DEBUG"``).
        json:
            Render JSON lines when ``True``; a human-readable console
            renderer otherwise.
        """
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())

        shared_processors: list[Any] = [
            structlog.contextvars.merge_contextvars,
            StreamContextProcessor(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]

        structlog.configure(
            processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        renderer: Any = (
            structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)

    @classmethod
    def configure_from(cls, settings: "EventSourcingSettings") -> None:
        """Configure from ``settings.log_level`` and ``settings.log_json``."""
        cls.configure(level=settings.log_level, json=settings.log_json)


__all__ = ["JsonLoggerFactory"]
