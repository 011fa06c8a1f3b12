"""Config settings – 12-factor env-based configuration."""
from mp_eventsourcing.config.settings.base import Settings
from mp_eventsourcing.config.settings.eventsourcing import EventSourcingSettings
from mp_eventsourcing.config.settings.factory import SettingsFactory
from mp_eventsourcing.config.settings.loaders import EnvSettingsLoader, SettingsLoader

__all__ = [
    "EnvSettingsLoader",
    "EventSourcingSettings",
    "Settings",
    "SettingsFactory",
    "SettingsLoader",
]
