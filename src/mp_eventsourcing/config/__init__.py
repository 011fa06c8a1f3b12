"""Config – 12-factor settings and loaders."""

from mp_eventsourcing.config.settings import (
    EnvSettingsLoader,
    EventSourcingSettings,
    Settings,
    SettingsFactory,
    SettingsLoader,
)
from mp_eventsourcing.config.validation import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
)

__all__ = [
    "ConfigError",
    "EnvSettingsLoader",
    "EventSourcingSettings",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "Settings",
    "SettingsFactory",
    "SettingsLoader",
]
