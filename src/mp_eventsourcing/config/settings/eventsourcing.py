"""Config settings – EventSourcingSettings."""
from __future__ import annotations

import dataclasses
import logging
from typing import ClassVar

from mp_eventsourcing.config.settings.base import Settings
from mp_eventsourcing.config.validation import InvalidSettingValueError

PROJECTION_MODES = ("sync", "async")


@dataclasses.dataclass
class EventSourcingSettings(Settings):
    """Runtime knobs for the event store, snapshots and projections.

    Read from ``EVENTSOURCING_*`` environment variables by
    :class:`~mp_eventsourcing.config.settings.loaders.EnvSettingsLoader`.
    """

    _prefix: ClassVar[str] = "EVENTSOURCING"

    database_url: str = "sqlite+aiosqlite:///:memory:"
    snapshot_every: int = 0
    projection_mode: str = "sync"
    projector_max_attempts: int = 5
    projector_backoff_base: float = 0.1
    projector_backoff_max: float = 5.0
    poll_interval: float = 1.0
    command_max_retries: int = 3
    log_level: str = "INFO"
    log_json: bool = True

    def _validate(self) -> None:
        if self.snapshot_every < 0:
            raise InvalidSettingValueError("snapshot_every", self.snapshot_every, "must be >= 0")
        if self.projection_mode not in PROJECTION_MODES:
            raise InvalidSettingValueError(
                "projection_mode", self.projection_mode, f"must be one of {PROJECTION_MODES}"
            )
        if self.projector_max_attempts < 1:
            raise InvalidSettingValueError(
                "projector_max_attempts", self.projector_max_attempts, "must be >= 1"
            )
        if self.projector_backoff_base < 0 or self.projector_backoff_max < 0:
            raise InvalidSettingValueError(
                "projector_backoff_base", self.projector_backoff_base, "backoff must be >= 0"
            )
        if self.poll_interval <= 0:
            raise InvalidSettingValueError("poll_interval", self.poll_interval, "must be > 0")
        if self.command_max_retries < 0:
            raise InvalidSettingValueError(
                "command_max_retries", self.command_max_retries, "must be >= 0"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise InvalidSettingValueError("log_level", self.log_level, "unknown log level")


__all__ = ["EventSourcingSettings", "PROJECTION_MODES"]
