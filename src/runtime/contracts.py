"""Protocols describing the runtime-facing timer, store and config capabilities."""

from __future__ import annotations

from typing import Optional, Protocol

from focus import SessionType, TimerActionResult, TimerSnapshot
from ledger import Project, Task


class TimerSettingsLike(Protocol):
    """Default durations used when a start command omits minutes."""
    work_minutes: int
    break_minutes: int


class NotificationSettingsLike(Protocol):
    break_reminders_enabled: bool
    break_reminder_interval_minutes: int


class AppConfigLike(Protocol):
    """Subset of app configuration required by runtime command handling."""
    timer: TimerSettingsLike
    notifications: NotificationSettingsLike


class FocusTimerLike(Protocol):
    def snapshot(self) -> TimerSnapshot:
        ...

    def start(
        self,
        minutes: int,
        task_id: Optional[int] = None,
        session_type: Optional[SessionType] = None,
    ) -> TimerActionResult:
        ...

    def pause(self) -> TimerActionResult:
        ...

    def resume(self) -> TimerActionResult:
        ...

    def cancel(self) -> TimerActionResult:
        ...

    def set_session_type(self, session_type: SessionType) -> TimerActionResult:
        ...

    def enable_break_reminders(self, interval_minutes: int) -> Optional[int]:
        ...

    def disable_break_reminders(self) -> None:
        ...


class TaskStoreLike(Protocol):
    """Entity store operations reachable from UI commands."""
    def get_task(self, task_id: int) -> Optional[Task]:
        ...

    def upsert_task(self, task: Task) -> int:
        ...

    def list_tasks(self, project_id: Optional[int] = None) -> list[Task]:
        ...

    def delete_task(self, task_id: int) -> bool:
        ...

    def delete_project(self, project_id: int) -> bool:
        ...

    def get_project(self, project_id: int) -> Optional[Project]:
        ...

    def upsert_project(self, project: Project) -> int:
        ...

    def list_projects(self) -> list[Project]:
        ...
