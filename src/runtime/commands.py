"""Dispatcher that executes UI commands against the timer and the entity store."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from focus import SessionType, TimerActionResult
from focus.clock import now_ms
from focus.constants import (
    ACTION_CANCEL,
    ACTION_PAUSE,
    ACTION_RESUME,
    ACTION_SET_SESSION_TYPE,
    ACTION_START,
    ACTION_SYNC,
    CHANNEL_TASK,
    REASON_STARTUP,
)
from focus.contracts import NotifierLike
from focus.completion import TASK_COMPLETE_TITLE
from ledger import LedgerError, Project, Task

from .contracts import AppConfigLike, FocusTimerLike, TaskStoreLike
from .messages import (
    default_timer_text,
    runtime_state,
    timer_rejection_text,
    timer_status_message,
)
from .ui import RuntimeUIPublisher

COMMAND_ENABLE_BREAK_REMINDERS = "enable_break_reminders"
COMMAND_DISABLE_BREAK_REMINDERS = "disable_break_reminders"
COMMAND_ADD_TASK = "add_task"
COMMAND_TOGGLE_TASK = "toggle_task"
COMMAND_DELETE_TASK = "delete_task"
COMMAND_LIST_TASKS = "list_tasks"
COMMAND_ADD_PROJECT = "add_project"
COMMAND_TOGGLE_PROJECT = "toggle_project"
COMMAND_DELETE_PROJECT = "delete_project"
COMMAND_LIST_PROJECTS = "list_projects"

TIMER_COMMANDS = frozenset(
    {ACTION_START, ACTION_PAUSE, ACTION_RESUME, ACTION_CANCEL, ACTION_SET_SESSION_TYPE}
)


class CommandError(ValueError):
    """Raised when a UI command is missing fields or carries invalid values."""


class RuntimeCommandDispatcher:
    """Routes UI commands to timer, break-reminder and task handlers.

    Every outcome, including rejections and failures, is reported back as a
    UI event; `handle_command` never raises.
    """
    def __init__(
        self,
        *,
        logger: logging.Logger,
        app_config: AppConfigLike,
        timer: FocusTimerLike,
        repository: TaskStoreLike,
        notifier: NotifierLike,
        ui: RuntimeUIPublisher,
        now_ms_fn: Optional[Callable[[], int]] = None,
    ):
        self._logger = logger
        self._app_config = app_config
        self._timer = timer
        self._repository = repository
        self._notifier = notifier
        self._ui = ui
        self._now_ms = now_ms_fn or now_ms

    def active_runtime_message(self) -> str:
        return timer_status_message(self._timer.snapshot())

    def publish_sync(self, reason: str = REASON_STARTUP) -> None:
        snapshot = self._timer.snapshot()
        self._ui.publish_timer_update(
            snapshot,
            action=ACTION_SYNC,
            accepted=True,
            reason=reason,
        )
        self._ui.publish_state(runtime_state(snapshot), message=timer_status_message(snapshot))

    def handle_command(self, command: Mapping[str, Any]) -> bool:
        """Apply one command; returns whether it was accepted."""
        raw_action = command.get("action")
        action = raw_action.strip() if isinstance(raw_action, str) else ""
        if not action:
            self._ui.publish_error("Command has no action")
            return False

        try:
            if action in TIMER_COMMANDS:
                return self._handle_timer_command(action, command)
            if action == ACTION_SYNC:
                self.publish_sync(reason=ACTION_SYNC)
                return True
            if action == COMMAND_ENABLE_BREAK_REMINDERS:
                return self._enable_break_reminders(command)
            if action == COMMAND_DISABLE_BREAK_REMINDERS:
                self._timer.disable_break_reminders()
                self._ui.publish_state(
                    runtime_state(self._timer.snapshot()),
                    message="Break reminders off",
                    break_reminders=False,
                )
                return True
            if action == COMMAND_ADD_TASK:
                return self._add_task(command)
            if action == COMMAND_TOGGLE_TASK:
                return self._toggle_task(command)
            if action == COMMAND_DELETE_TASK:
                return self._delete_task(command)
            if action == COMMAND_LIST_TASKS:
                self._ui.publish_tasks(self._repository.list_tasks())
                return True
            if action == COMMAND_ADD_PROJECT:
                return self._add_project(command)
            if action == COMMAND_TOGGLE_PROJECT:
                return self._toggle_project(command)
            if action == COMMAND_DELETE_PROJECT:
                return self._delete_project(command)
            if action == COMMAND_LIST_PROJECTS:
                self._ui.publish_projects(self._repository.list_projects())
                return True
        except CommandError as error:
            self._logger.warning("Rejected %s command: %s", action, error)
            self._ui.publish_error(str(error), action=action)
            return False
        except LedgerError as error:
            self._logger.error("Store error while handling %s: %s", action, error)
            self._ui.publish_error(f"Could not save changes: {error}", action=action)
            return False

        self._logger.warning("Unsupported command: %s", action)
        self._ui.publish_error(f"Unsupported command: {action}", action=action)
        return False

    def _handle_timer_command(self, action: str, command: Mapping[str, Any]) -> bool:
        if action == ACTION_START:
            session_type = _optional_session_type(command) or self._timer.snapshot().session_type
            minutes = _optional_int(command, "minutes")
            if minutes is None:
                minutes = self._default_minutes(session_type)
            result = self._timer.start(
                minutes,
                task_id=_optional_int(command, "task_id"),
                session_type=session_type,
            )
        elif action == ACTION_PAUSE:
            result = self._timer.pause()
        elif action == ACTION_RESUME:
            result = self._timer.resume()
        elif action == ACTION_CANCEL:
            result = self._timer.cancel()
        else:
            session_type = _optional_session_type(command)
            if session_type is None:
                raise CommandError("session_type is required")
            result = self._timer.set_session_type(session_type)

        self._publish_result(result)
        return result.accepted

    def _publish_result(self, result: TimerActionResult) -> None:
        if result.accepted:
            message = default_timer_text(result.action, result.snapshot)
        else:
            message = timer_rejection_text(result.action, result.reason)
            self._logger.debug("Timer %s rejected: %s", result.action, result.reason)
        self._ui.publish_timer_update(
            result.snapshot,
            action=result.action,
            accepted=result.accepted,
            reason=result.reason,
            message=message,
        )
        self._ui.publish_state(
            runtime_state(result.snapshot),
            message=timer_status_message(result.snapshot),
        )

    def _default_minutes(self, session_type: SessionType) -> int:
        timer_settings = self._app_config.timer
        if session_type == SessionType.BREAK:
            return timer_settings.break_minutes
        return timer_settings.work_minutes

    def _enable_break_reminders(self, command: Mapping[str, Any]) -> bool:
        interval = _optional_int(command, "interval_minutes")
        if interval is None:
            interval = self._app_config.notifications.break_reminder_interval_minutes
        effective = self._timer.enable_break_reminders(interval)
        if effective is None:
            raise CommandError("interval_minutes must be positive")
        self._ui.publish_state(
            runtime_state(self._timer.snapshot()),
            message=f"Break reminders every {effective} min",
            break_reminders=True,
            interval_minutes=effective,
        )
        return True

    def _add_task(self, command: Mapping[str, Any]) -> bool:
        title = _required_text(command, "title")
        expected = _optional_int(command, "expected_minutes")
        if expected is None or expected < 0:
            raise CommandError("expected_minutes must be zero or more")
        project_id = _optional_int(command, "project_id")
        if project_id is not None and self._repository.get_project(project_id) is None:
            raise CommandError(f"Unknown project: {project_id}")

        task_id = self._repository.upsert_task(
            Task(
                title=title,
                expected_minutes=expected,
                project_id=project_id,
                alarm_on_completion=_optional_bool(command, "alarm_on_completion"),
                description=_optional_text(command, "description"),
            )
        )
        self._logger.info("Added task %d: %s", task_id, title)
        self._ui.publish_tasks(self._repository.list_tasks())
        return True

    def _toggle_task(self, command: Mapping[str, Any]) -> bool:
        task_id = _optional_int(command, "task_id")
        if task_id is None:
            raise CommandError("task_id is required")
        task = self._repository.get_task(task_id)
        if task is None:
            raise CommandError(f"Unknown task: {task_id}")

        completed = not task.is_completed
        updated = replace(
            task,
            is_completed=completed,
            completed_at_ms=self._now_ms() if completed else None,
        )
        self._repository.upsert_task(updated)
        self._logger.info("Task %d marked %s", task_id, "complete" if completed else "open")
        if completed and task.alarm_on_completion:
            self._notifier.notify(CHANNEL_TASK, TASK_COMPLETE_TITLE, f"{task.title} finished")
        self._ui.publish_tasks(self._repository.list_tasks())
        return True

    def _delete_task(self, command: Mapping[str, Any]) -> bool:
        task_id = _optional_int(command, "task_id")
        if task_id is None:
            raise CommandError("task_id is required")
        if not self._repository.delete_task(task_id):
            raise CommandError(f"Unknown task: {task_id}")
        self._logger.info("Deleted task %d", task_id)
        self._ui.publish_tasks(self._repository.list_tasks())
        return True

    def _add_project(self, command: Mapping[str, Any]) -> bool:
        name = _required_text(command, "name")
        expected = _optional_int(command, "expected_minutes")
        if expected is not None and expected < 0:
            raise CommandError("expected_minutes must be zero or more")
        project_id = self._repository.upsert_project(
            Project(
                name=name,
                expected_minutes=expected or 0,
                description=_optional_text(command, "description"),
            )
        )
        self._logger.info("Added project %d: %s", project_id, name)
        self._ui.publish_projects(self._repository.list_projects())
        return True

    def _toggle_project(self, command: Mapping[str, Any]) -> bool:
        project_id = _optional_int(command, "project_id")
        if project_id is None:
            raise CommandError("project_id is required")
        project = self._repository.get_project(project_id)
        if project is None:
            raise CommandError(f"Unknown project: {project_id}")

        completed = not project.is_completed
        self._repository.upsert_project(
            replace(
                project,
                is_completed=completed,
                completed_at_ms=self._now_ms() if completed else None,
            )
        )
        self._logger.info(
            "Project %d marked %s", project_id, "complete" if completed else "open"
        )
        self._ui.publish_projects(self._repository.list_projects())
        return True

    def _delete_project(self, command: Mapping[str, Any]) -> bool:
        project_id = _optional_int(command, "project_id")
        if project_id is None:
            raise CommandError("project_id is required")
        if not self._repository.delete_project(project_id):
            raise CommandError(f"Unknown project: {project_id}")
        self._logger.info("Deleted project %d and its tasks", project_id)
        self._ui.publish_projects(self._repository.list_projects())
        # Tasks of the project went with it.
        self._ui.publish_tasks(self._repository.list_tasks())
        return True


def _optional_int(command: Mapping[str, Any], key: str) -> Optional[int]:
    value = command.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise CommandError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise CommandError(f"{key} must be an integer")


def _optional_bool(command: Mapping[str, Any], key: str) -> bool:
    value = command.get(key, False)
    if not isinstance(value, bool):
        raise CommandError(f"{key} must be true or false")
    return value


def _optional_text(command: Mapping[str, Any], key: str) -> Optional[str]:
    value = command.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise CommandError(f"{key} must be a string")
    return value.strip() or None


def _required_text(command: Mapping[str, Any], key: str) -> str:
    value = _optional_text(command, key)
    if value is None:
        raise CommandError(f"{key} is required")
    return value


def _optional_session_type(command: Mapping[str, Any]) -> Optional[SessionType]:
    value = command.get("session_type")
    if value is None:
        return None
    if not isinstance(value, str):
        raise CommandError("session_type must be WORK or BREAK")
    try:
        return SessionType(value.strip().upper())
    except ValueError as error:
        raise CommandError("session_type must be WORK or BREAK") from error
