from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Project:
    name: str
    expected_minutes: int = 0
    description: Optional[str] = None
    is_completed: bool = False
    completed_at_ms: Optional[int] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "expected_minutes": self.expected_minutes,
            "description": self.description,
            "is_completed": self.is_completed,
            "completed_at_ms": self.completed_at_ms,
        }


@dataclass(frozen=True)
class Task:
    """Unit of work that focus sessions can be bound to.

    `actual_minutes` is derived: it is the sum of every session log entry
    bound to the task and is refreshed when a WORK session completes.
    """
    title: str
    expected_minutes: int = 0
    project_id: Optional[int] = None
    actual_minutes: int = 0
    is_completed: bool = False
    alarm_on_completion: bool = False
    description: Optional[str] = None
    completed_at_ms: Optional[int] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "project_id": self.project_id,
            "expected_minutes": self.expected_minutes,
            "actual_minutes": self.actual_minutes,
            "is_completed": self.is_completed,
            "alarm_on_completion": self.alarm_on_completion,
            "description": self.description,
            "completed_at_ms": self.completed_at_ms,
        }


@dataclass(frozen=True)
class SessionLogRecord:
    """Append-only record of one completed session."""
    session_type: str
    start_ms: int
    end_ms: int
    expected_minutes: int
    actual_minutes: int
    task_id: Optional[int] = None
    id: Optional[int] = None
