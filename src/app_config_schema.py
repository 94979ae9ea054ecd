"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CONFIG_FILE = "config.toml"


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class TimerSettings:
    """Default session lengths from `[timer]`."""
    work_minutes: int = 25
    break_minutes: int = 5
    default_session_type: str = "WORK"


@dataclass(frozen=True)
class StorageSettings:
    """Resolved on-disk locations from `[storage]`."""
    data_dir: str = ""
    database_file: str = ""
    snapshot_file: str = ""


@dataclass(frozen=True)
class SchedulerSettings:
    poll_interval_seconds: float = 1.0
    max_attempts: int = 3
    retry_delay_seconds: float = 30.0


@dataclass(frozen=True)
class NotificationSettings:
    """Notification delivery and break reminder settings from `[notifications]`."""
    enabled: bool = True
    break_reminders_enabled: bool = False
    break_reminder_interval_minutes: int = 30


@dataclass(frozen=True)
class UIServerSettings:
    """Static UI and websocket server settings from `[ui_server]`."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765
    index_file: str = ""


@dataclass(frozen=True)
class AppConfig:
    """Top-level immutable runtime configuration loaded from TOML."""
    timer: TimerSettings
    storage: StorageSettings
    scheduler: SchedulerSettings
    notifications: NotificationSettings
    ui_server: UIServerSettings
    source_file: str
