"""Protocols describing the collaborators the focus timer core depends on."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from ledger.models import SessionLogRecord, Task


class SchedulerLike(Protocol):
    """Deferred execution facility addressed by named slots."""
    def arm(
        self,
        slot: str,
        kind: str,
        fire_at_ms: int,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        ...

    def arm_periodic(
        self,
        slot: str,
        kind: str,
        period_ms: int,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        ...

    def cancel(self, slot: str) -> None:
        ...


class RepositoryLike(Protocol):
    """Subset of the entity store used by session completion."""
    def get_task(self, task_id: int) -> Optional[Task]:
        ...

    def upsert_task(self, task: Task) -> int:
        ...

    def sum_session_minutes(self, task_id: int, session_type: Optional[str] = None) -> int:
        ...

    def append_session_log(self, record: SessionLogRecord) -> int:
        ...


class NotifierLike(Protocol):
    """Best-effort notification delivery."""
    def notify(self, channel: str, title: str, message: str) -> None:
        ...
