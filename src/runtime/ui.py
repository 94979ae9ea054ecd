from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from contracts.ui_protocol import EVENT_ERROR, EVENT_PROJECTS, EVENT_TASKS, EVENT_TIMER, STATE_ERROR
from focus import TimerSnapshot
from focus.clock import display_seconds
from ledger import Project, Task


class UIServerLike(Protocol):
    def publish(self, event_type: str, **payload: Any) -> None:
        ...

    def publish_state(
        self,
        state: str,
        *,
        message: Optional[str] = None,
        **payload: Any,
    ) -> None:
        ...


class RuntimeUIPublisher:
    def __init__(self, ui_server: Optional[UIServerLike]):
        self._ui_server = ui_server

    def publish(self, event_type: str, **payload: Any) -> None:
        if self._ui_server:
            self._ui_server.publish(event_type, **payload)

    def publish_state(
        self,
        state: str,
        *,
        message: Optional[str] = None,
        **payload: Any,
    ) -> None:
        if self._ui_server:
            self._ui_server.publish_state(state, message=message, **payload)

    def publish_timer_update(
        self,
        snapshot: TimerSnapshot,
        *,
        action: str,
        accepted: Optional[bool] = None,
        reason: str = "",
        message: Optional[str] = None,
    ) -> None:
        payload: dict[str, Any] = {
            "action": action,
            "phase": snapshot.phase,
            "session_type": snapshot.session_type.value,
            "expected_minutes": snapshot.expected_minutes,
            "duration_seconds": display_seconds(snapshot.total_ms),
            "remaining_seconds": display_seconds(snapshot.remaining_ms),
            "progress": round(snapshot.progress, 4),
            "task_id": snapshot.task_id,
        }
        if accepted is not None:
            payload["accepted"] = accepted
        if reason:
            payload["reason"] = reason
        if message:
            payload["message"] = message
        self.publish(EVENT_TIMER, **payload)

    def publish_tasks(self, tasks: Iterable[Task]) -> None:
        self.publish(EVENT_TASKS, tasks=[task.to_dict() for task in tasks])

    def publish_projects(self, projects: Iterable[Project]) -> None:
        self.publish(EVENT_PROJECTS, projects=[project.to_dict() for project in projects])

    def publish_error(self, message: str, **payload: Any) -> None:
        self.publish(EVENT_ERROR, state=STATE_ERROR, message=message, **payload)
