"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    AppConfig,
    AppConfigurationError,
    NotificationSettings,
    SchedulerSettings,
    StorageSettings,
    TimerSettings,
    UIServerSettings,
)

_SESSION_TYPES = {"WORK", "BREAK"}
_DEFAULT_DATA_DIR = "data"
_DEFAULT_DATABASE_FILE = "focus.db"
_DEFAULT_SNAPSHOT_FILE = "timer_state.json"


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    return AppConfig(
        timer=_parse_timer_settings(_section(raw, "timer")),
        storage=_parse_storage_settings(_section(raw, "storage"), base_dir=base_dir),
        scheduler=_parse_scheduler_settings(_section(raw, "scheduler")),
        notifications=_parse_notification_settings(_section(raw, "notifications")),
        ui_server=_parse_ui_server_settings(_section(raw, "ui_server"), base_dir=base_dir),
        source_file=source_file,
    )


def _parse_timer_settings(section: Mapping[str, Any]) -> TimerSettings:
    session_type = _as_str(
        section.get("default_session_type", "WORK"),
        "timer.default_session_type",
    ).upper()
    if session_type not in _SESSION_TYPES:
        raise AppConfigurationError("timer.default_session_type must be WORK or BREAK.")
    return TimerSettings(
        work_minutes=_as_positive_int(section.get("work_minutes", 25), "timer.work_minutes"),
        break_minutes=_as_positive_int(section.get("break_minutes", 5), "timer.break_minutes"),
        default_session_type=session_type,
    )


def _parse_storage_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> StorageSettings:
    data_dir = _as_str(section.get("data_dir", _DEFAULT_DATA_DIR), "storage.data_dir")
    resolved_data_dir = Path(_resolve_path(base_dir, data_dir or _DEFAULT_DATA_DIR))
    database_file = _as_str(
        section.get("database_file", _DEFAULT_DATABASE_FILE),
        "storage.database_file",
    )
    snapshot_file = _as_str(
        section.get("snapshot_file", _DEFAULT_SNAPSHOT_FILE),
        "storage.snapshot_file",
    )
    return StorageSettings(
        data_dir=str(resolved_data_dir),
        # Storage files are relative to the data directory.
        database_file=_resolve_path(resolved_data_dir, database_file or _DEFAULT_DATABASE_FILE),
        snapshot_file=_resolve_path(resolved_data_dir, snapshot_file or _DEFAULT_SNAPSHOT_FILE),
    )


def _parse_scheduler_settings(section: Mapping[str, Any]) -> SchedulerSettings:
    poll_interval = _as_float(
        section.get("poll_interval_seconds", 1.0),
        "scheduler.poll_interval_seconds",
    )
    if poll_interval <= 0:
        raise AppConfigurationError("scheduler.poll_interval_seconds must be greater than 0.")
    retry_delay = _as_float(
        section.get("retry_delay_seconds", 30.0),
        "scheduler.retry_delay_seconds",
    )
    if retry_delay < 0:
        raise AppConfigurationError("scheduler.retry_delay_seconds must not be negative.")
    return SchedulerSettings(
        poll_interval_seconds=poll_interval,
        max_attempts=_as_positive_int(
            section.get("max_attempts", 3),
            "scheduler.max_attempts",
        ),
        retry_delay_seconds=retry_delay,
    )


def _parse_notification_settings(section: Mapping[str, Any]) -> NotificationSettings:
    return NotificationSettings(
        enabled=_as_bool(section.get("enabled", True), "notifications.enabled"),
        break_reminders_enabled=_as_bool(
            section.get("break_reminders_enabled", False),
            "notifications.break_reminders_enabled",
        ),
        break_reminder_interval_minutes=_as_positive_int(
            section.get("break_reminder_interval_minutes", 30),
            "notifications.break_reminder_interval_minutes",
        ),
    )


def _parse_ui_server_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> UIServerSettings:
    index_file = _as_str(section.get("index_file", ""), "ui_server.index_file")
    return UIServerSettings(
        enabled=_as_bool(section.get("enabled", True), "ui_server.enabled"),
        host=_as_str(section.get("host", "127.0.0.1"), "ui_server.host"),
        port=_as_int(section.get("port", 8765), "ui_server.port"),
        index_file=_resolve_path(base_dir, index_file) if index_file else "",
    )


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_positive_int(value: Any, field: str) -> int:
    number = _as_int(value, field)
    if number <= 0:
        raise AppConfigurationError(f"{field} must be greater than 0.")
    return number


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a float.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a float.") from error
    raise AppConfigurationError(f"{field} must be a float.")


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
