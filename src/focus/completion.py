"""Deferred work that runs when a focus session reaches its end instant."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from ledger.models import SessionLogRecord
from scheduler.errors import PermanentJobError

from .clock import elapsed_minutes, now_ms
from .constants import CHANNEL_SESSION, CHANNEL_TASK, SessionType
from .contracts import NotifierLike, RepositoryLike

DEFAULT_WORK_TITLE = "Work session complete"
DEFAULT_BREAK_TITLE = "Break complete"
DEFAULT_MESSAGE = "Time's up!"
TASK_COMPLETE_TITLE = "Task complete"


@dataclass(frozen=True)
class CompletionPayload:
    """Session facts captured when the completion job is armed."""
    session_type: SessionType
    task_id: Optional[int]
    expected_minutes: int
    start_ms: int
    title: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.session_type.value,
            "task_id": self.task_id if self.task_id is not None else -1,
            "expected_minutes": self.expected_minutes,
            "start_ms": self.start_ms,
            "title": self.title or "",
            "message": self.message or "",
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], *, default_start_ms: int) -> "CompletionPayload":
        raw_type = raw.get("type")
        if not isinstance(raw_type, str) or not raw_type:
            raise ValueError("completion payload has no session type")
        try:
            session_type = SessionType(raw_type)
        except ValueError as error:
            raise ValueError(f"unknown session type: {raw_type!r}") from error

        task_id = _int_field(raw, "task_id", -1)
        title = raw.get("title")
        message = raw.get("message")
        return cls(
            session_type=session_type,
            task_id=task_id if task_id > 0 else None,
            expected_minutes=_int_field(raw, "expected_minutes", 0),
            start_ms=_int_field(raw, "start_ms", default_start_ms),
            title=title.strip() if isinstance(title, str) and title.strip() else None,
            message=message.strip() if isinstance(message, str) and message.strip() else None,
        )


class SessionCompletionHandler:
    """Scheduler job handler for the end of a session.

    Runs on the scheduler thread, possibly in a later process than the one
    that started the session, and therefore only uses the payload plus the
    repository and notifier. Ledger failures propagate so the scheduler can
    retry the job.
    """

    def __init__(
        self,
        *,
        repository: RepositoryLike,
        notifier: NotifierLike,
        logger: Optional[logging.Logger] = None,
        now_ms_fn: Optional[Callable[[], int]] = None,
    ):
        self._repository = repository
        self._notifier = notifier
        self._logger = logger or logging.getLogger("focus.completion")
        self._now_ms = now_ms_fn or now_ms

    def __call__(self, raw_payload: Mapping[str, Any]) -> None:
        self.handle(raw_payload)

    def handle(self, raw_payload: Mapping[str, Any]) -> SessionLogRecord:
        now = self._now_ms()
        try:
            payload = CompletionPayload.from_dict(raw_payload, default_start_ms=now)
        except ValueError as error:
            raise PermanentJobError(f"Unusable completion payload: {error}") from error

        default_title = (
            DEFAULT_WORK_TITLE
            if payload.session_type == SessionType.WORK
            else DEFAULT_BREAK_TITLE
        )
        self._notify(
            CHANNEL_SESSION,
            payload.title or default_title,
            payload.message or DEFAULT_MESSAGE,
        )

        # Never log less than the planned duration, even if resumed late.
        actual = max(payload.expected_minutes, elapsed_minutes(payload.start_ms, now))
        record = SessionLogRecord(
            session_type=payload.session_type.value,
            task_id=payload.task_id,
            start_ms=payload.start_ms,
            end_ms=now,
            expected_minutes=payload.expected_minutes,
            actual_minutes=actual,
        )
        log_id = self._repository.append_session_log(record)
        record = replace(record, id=log_id)
        self._logger.info(
            "Session completed: type=%s expected=%d actual=%d task=%s",
            payload.session_type.value,
            payload.expected_minutes,
            actual,
            payload.task_id,
        )

        if payload.session_type == SessionType.WORK and payload.task_id is not None:
            self._update_task(payload.task_id, now)
        return record

    def _update_task(self, task_id: int, now: int) -> None:
        task = self._repository.get_task(task_id)
        if task is None:
            self._logger.warning("Completed session refers to missing task %d", task_id)
            return

        total = self._repository.sum_session_minutes(task_id)
        updated = replace(task, actual_minutes=total)
        became_complete = not task.is_completed and total >= task.expected_minutes
        if became_complete:
            updated = replace(updated, is_completed=True, completed_at_ms=now)
        self._repository.upsert_task(updated)

        if became_complete:
            self._logger.info("Task %d completed (%d/%d min)", task_id, total, task.expected_minutes)
            if task.alarm_on_completion:
                self._notify(CHANNEL_TASK, TASK_COMPLETE_TITLE, f"{task.title} finished")

    def _notify(self, channel: str, title: str, message: str) -> None:
        try:
            self._notifier.notify(channel, title, message)
        except Exception as error:
            self._logger.warning("Notification on %s failed: %s", channel, error)


def _int_field(raw: Mapping[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value
