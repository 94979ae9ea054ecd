"""Thread-safe focus session state machine with durable restart recovery."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from scheduler.errors import SchedulerError

from .clock import display_seconds, minutes_to_ms, now_ms, remaining_ms
from .completion import CompletionPayload
from .constants import (
    ACTION_CANCEL,
    ACTION_PAUSE,
    ACTION_RESTORE,
    ACTION_RESUME,
    ACTION_SET_SESSION_TYPE,
    ACTION_START,
    ACTIVE_PHASES,
    BREAK_REMINDER_SLOT,
    JOB_BREAK_REMINDER,
    JOB_SESSION_END,
    MIN_BREAK_REMINDER_MINUTES,
    PHASE_IDLE,
    PHASE_PAUSED,
    PHASE_RUNNING,
    REASON_CANCELLED,
    REASON_INVALID_DURATION,
    REASON_NO_REMAINING,
    REASON_NOT_PAUSED,
    REASON_NOT_RUNNING,
    REASON_NOTHING_TO_RESTORE,
    REASON_PAUSED,
    REASON_RESTORED_EXPIRED,
    REASON_RESTORED_PAUSED,
    REASON_RESTORED_RUNNING,
    REASON_RESUMED,
    REASON_SESSION_ACTIVE,
    REASON_STARTED,
    REASON_TYPE_SELECTED,
    SESSION_END_SLOT,
    SessionType,
)
from .contracts import SchedulerLike
from .snapshot import DurableSnapshot, SnapshotPersistenceError, SnapshotStoreLike

TimerPhase = Literal["idle", "running", "paused"]
TimerAction = Literal["start", "pause", "resume", "cancel", "set_session_type", "restore"]


@dataclass(frozen=True)
class TimerSnapshot:
    """Immutable timer view published to the runtime and UI."""
    phase: TimerPhase
    session_type: SessionType
    expected_minutes: int
    remaining_ms: int
    total_ms: int
    task_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    @property
    def progress(self) -> float:
        if self.total_ms <= 0:
            return 0.0
        done = 1.0 - (self.remaining_ms / self.total_ms)
        return max(0.0, min(1.0, done))


@dataclass(frozen=True)
class TimerActionResult:
    """Result envelope returned after applying a timer action."""
    action: TimerAction
    accepted: bool
    reason: str
    snapshot: TimerSnapshot


@dataclass(frozen=True)
class TimerTick:
    """Tick payload emitted by the foreground ticking loop."""
    snapshot: TimerSnapshot
    completed: bool = False


class FocusTimer:
    """Idle/Running/Paused state machine for a single focus session.

    The timer is the only owner of its fields. Every transition writes a
    `DurableSnapshot` before (re)arming the deferred completion job, so a
    crash between the two never leaves an armed job without a snapshot that
    can be reconciled by `restore_on_start`.

    Completion side effects (session log, task completion) are not run here;
    they belong to the job armed under `SESSION_END_SLOT`, which fires even
    if this process is gone. `tick` only drives the display.
    """

    def __init__(
        self,
        *,
        snapshot_store: SnapshotStoreLike,
        scheduler: SchedulerLike,
        session_type: SessionType = SessionType.WORK,
        logger: Optional[logging.Logger] = None,
        now_ms_fn: Optional[Callable[[], int]] = None,
    ):
        self._snapshot_store = snapshot_store
        self._scheduler = scheduler
        self._logger = logger or logging.getLogger("focus.timer")
        self._now_ms = now_ms_fn or now_ms
        self._lock = threading.Lock()

        self._session_type = SessionType(session_type)
        self._phase: TimerPhase = PHASE_IDLE
        self._expected_minutes = 0
        self._start_ms = 0
        self._end_ms = 0
        self._total_ms = 0
        self._task_id: Optional[int] = None
        self._paused_remaining_ms = 0
        self._ticking = False
        self._last_emitted_seconds: Optional[int] = None

    @property
    def is_ticking(self) -> bool:
        with self._lock:
            return self._ticking

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            return self._snapshot_locked(self._now_ms())

    def start(
        self,
        minutes: int,
        task_id: Optional[int] = None,
        session_type: Optional[SessionType] = None,
    ) -> TimerActionResult:
        with self._lock:
            now = self._now_ms()
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
                self._logger.debug("Ignoring start with invalid duration: %r", minutes)
                return self._result_locked(ACTION_START, False, REASON_INVALID_DURATION, now)

            # Only one session may be live; drop whatever the previous one armed.
            self._stop_ticking_locked()
            self._cancel_completion_locked()

            if session_type is not None:
                self._session_type = SessionType(session_type)
            self._expected_minutes = minutes
            self._task_id = task_id if task_id is not None and task_id > 0 else None
            self._start_ms = now
            self._total_ms = minutes_to_ms(minutes)
            self._end_ms = now + self._total_ms
            self._paused_remaining_ms = 0
            self._phase = PHASE_RUNNING

            self._persist_locked()
            self._arm_completion_locked()
            self._start_ticking_locked()
            self._logger.info(
                "Session started: type=%s minutes=%d task=%s",
                self._session_type.value,
                minutes,
                self._task_id,
            )
            return self._result_locked(ACTION_START, True, REASON_STARTED, now)

    def pause(self) -> TimerActionResult:
        with self._lock:
            now = self._now_ms()
            if self._phase != PHASE_RUNNING:
                return self._result_locked(ACTION_PAUSE, False, REASON_NOT_RUNNING, now)

            self._stop_ticking_locked()
            self._paused_remaining_ms = remaining_ms(self._end_ms, now)
            self._cancel_completion_locked()
            self._phase = PHASE_PAUSED
            self._persist_locked()
            self._logger.info(
                "Session paused: type=%s remaining=%dms",
                self._session_type.value,
                self._paused_remaining_ms,
            )
            return self._result_locked(ACTION_PAUSE, True, REASON_PAUSED, now)

    def resume(self) -> TimerActionResult:
        with self._lock:
            now = self._now_ms()
            if self._phase != PHASE_PAUSED:
                return self._result_locked(ACTION_RESUME, False, REASON_NOT_PAUSED, now)
            if self._paused_remaining_ms <= 0:
                return self._result_locked(ACTION_RESUME, False, REASON_NO_REMAINING, now)

            # The target duration stays; only the remaining budget is re-anchored.
            remaining = self._paused_remaining_ms
            self._start_ms = now
            self._end_ms = now + remaining
            self._paused_remaining_ms = 0
            self._phase = PHASE_RUNNING

            self._persist_locked()
            self._arm_completion_locked()
            self._start_ticking_locked()
            self._logger.info(
                "Session resumed: type=%s remaining=%dms",
                self._session_type.value,
                remaining,
            )
            return self._result_locked(ACTION_RESUME, True, REASON_RESUMED, now)

    def cancel(self) -> TimerActionResult:
        """Discard the current session without writing a session log entry."""
        with self._lock:
            now = self._now_ms()
            was_active = self._phase in ACTIVE_PHASES
            self._stop_ticking_locked()
            self._cancel_completion_locked()
            self._reset_locked()
            self._clear_snapshot_locked()
            if was_active:
                self._logger.info("Session cancelled")
            return self._result_locked(ACTION_CANCEL, True, REASON_CANCELLED, now)

    def set_session_type(self, session_type: SessionType) -> TimerActionResult:
        with self._lock:
            now = self._now_ms()
            if self._phase in ACTIVE_PHASES:
                return self._result_locked(
                    ACTION_SET_SESSION_TYPE, False, REASON_SESSION_ACTIVE, now
                )
            self._session_type = SessionType(session_type)
            return self._result_locked(ACTION_SET_SESSION_TYPE, True, REASON_TYPE_SELECTED, now)

    def tick(self) -> Optional[TimerTick]:
        """Recompute remaining time; returns a tick at most once per displayed second."""
        with self._lock:
            if not self._ticking or self._phase != PHASE_RUNNING:
                return None

            now = self._now_ms()
            remaining = remaining_ms(self._end_ms, now)
            if remaining <= 0:
                completed = TimerSnapshot(
                    phase=PHASE_IDLE,
                    session_type=self._session_type,
                    expected_minutes=self._expected_minutes,
                    remaining_ms=0,
                    total_ms=self._total_ms,
                    task_id=self._task_id,
                )
                self._stop_ticking_locked()
                self._reset_locked()
                self._clear_snapshot_locked()
                self._logger.info(
                    "Session reached zero: type=%s minutes=%d",
                    completed.session_type.value,
                    completed.expected_minutes,
                )
                return TimerTick(snapshot=completed, completed=True)

            seconds = display_seconds(remaining)
            if self._last_emitted_seconds == seconds:
                return None
            self._last_emitted_seconds = seconds
            return TimerTick(snapshot=self._snapshot_locked(now), completed=False)

    def restore_on_start(self) -> TimerActionResult:
        """Reconcile the persisted snapshot with the current wall clock."""
        with self._lock:
            now = self._now_ms()
            stored = self._snapshot_store.read()
            if stored is None or not stored.has_session:
                return self._result_locked(ACTION_RESTORE, False, REASON_NOTHING_TO_RESTORE, now)

            self._session_type = stored.session_type
            self._expected_minutes = stored.expected_minutes
            self._task_id = stored.task_id
            self._total_ms = minutes_to_ms(stored.expected_minutes)
            self._start_ms = stored.start_ms
            self._end_ms = stored.end_ms

            if stored.running:
                if remaining_ms(stored.end_ms, now) > 0:
                    self._phase = PHASE_RUNNING
                    # Replace, in case the process died before the job was stored.
                    self._arm_completion_locked()
                    self._start_ticking_locked()
                    self._logger.info(
                        "Restored running session: remaining=%dms",
                        remaining_ms(stored.end_ms, now),
                    )
                    return self._result_locked(ACTION_RESTORE, True, REASON_RESTORED_RUNNING, now)

                # Ended while no process was alive; the persisted job owns completion.
                self._reset_locked()
                self._clear_snapshot_locked()
                self._logger.info("Session ended while the app was not running")
                return self._result_locked(ACTION_RESTORE, True, REASON_RESTORED_EXPIRED, now)

            if stored.paused_remaining_ms > 0:
                self._phase = PHASE_PAUSED
                self._paused_remaining_ms = stored.paused_remaining_ms
                self._cancel_completion_locked()
                self._logger.info(
                    "Restored paused session: remaining=%dms",
                    stored.paused_remaining_ms,
                )
                return self._result_locked(ACTION_RESTORE, True, REASON_RESTORED_PAUSED, now)

            self._reset_locked()
            self._clear_snapshot_locked()
            return self._result_locked(ACTION_RESTORE, False, REASON_NOTHING_TO_RESTORE, now)

    def enable_break_reminders(self, interval_minutes: int) -> Optional[int]:
        """Arm the periodic break reminder; returns the effective interval in minutes.

        Returns None, arming nothing, when the interval is not a positive integer.
        """
        if (
            isinstance(interval_minutes, bool)
            or not isinstance(interval_minutes, int)
            or interval_minutes <= 0
        ):
            self._logger.debug("Ignoring break reminder interval: %r", interval_minutes)
            return None
        interval = max(MIN_BREAK_REMINDER_MINUTES, interval_minutes)
        try:
            self._scheduler.arm_periodic(
                BREAK_REMINDER_SLOT,
                JOB_BREAK_REMINDER,
                minutes_to_ms(interval),
            )
        except SchedulerError as error:
            self._logger.error("Failed to enable break reminders: %s", error)
        else:
            self._logger.info("Break reminders enabled every %d minutes", interval)
        return interval

    def disable_break_reminders(self) -> None:
        try:
            self._scheduler.cancel(BREAK_REMINDER_SLOT)
        except SchedulerError as error:
            self._logger.error("Failed to disable break reminders: %s", error)
        else:
            self._logger.info("Break reminders disabled")

    def _start_ticking_locked(self) -> None:
        self._ticking = True
        self._last_emitted_seconds = None

    def _stop_ticking_locked(self) -> None:
        self._ticking = False
        self._last_emitted_seconds = None

    def _reset_locked(self) -> None:
        self._phase = PHASE_IDLE
        self._expected_minutes = 0
        self._start_ms = 0
        self._end_ms = 0
        self._total_ms = 0
        self._task_id = None
        self._paused_remaining_ms = 0

    def _durable_locked(self) -> DurableSnapshot:
        return DurableSnapshot(
            running=self._phase == PHASE_RUNNING,
            start_ms=self._start_ms,
            end_ms=self._end_ms,
            expected_minutes=self._expected_minutes,
            session_type=self._session_type,
            task_id=self._task_id,
            paused_remaining_ms=self._paused_remaining_ms,
        )

    def _persist_locked(self) -> None:
        snapshot = self._durable_locked()
        for attempt in (1, 2):
            try:
                self._snapshot_store.write(snapshot)
                return
            except SnapshotPersistenceError as error:
                if attempt == 2:
                    self._logger.error(
                        "Timer snapshot not persisted; restart recovery is degraded: %s",
                        error,
                    )
                else:
                    self._logger.warning("Timer snapshot write failed, retrying: %s", error)

    def _clear_snapshot_locked(self) -> None:
        try:
            self._snapshot_store.clear()
        except SnapshotPersistenceError as error:
            self._logger.error("Failed to clear timer snapshot: %s", error)

    def _arm_completion_locked(self) -> None:
        payload = CompletionPayload(
            session_type=self._session_type,
            task_id=self._task_id,
            expected_minutes=self._expected_minutes,
            start_ms=self._start_ms,
        )
        try:
            self._scheduler.arm(
                SESSION_END_SLOT,
                JOB_SESSION_END,
                self._end_ms,
                payload.to_dict(),
            )
        except SchedulerError as error:
            self._logger.error("Failed to schedule session completion: %s", error)

    def _cancel_completion_locked(self) -> None:
        try:
            self._scheduler.cancel(SESSION_END_SLOT)
        except SchedulerError as error:
            self._logger.error("Failed to cancel scheduled completion: %s", error)

    def _result_locked(
        self,
        action: TimerAction,
        accepted: bool,
        reason: str,
        now: int,
    ) -> TimerActionResult:
        return TimerActionResult(
            action=action,
            accepted=accepted,
            reason=reason,
            snapshot=self._snapshot_locked(now),
        )

    def _snapshot_locked(self, now: int) -> TimerSnapshot:
        if self._phase == PHASE_RUNNING:
            remaining = remaining_ms(self._end_ms, now)
        elif self._phase == PHASE_PAUSED:
            remaining = self._paused_remaining_ms
        else:
            remaining = 0
        return TimerSnapshot(
            phase=self._phase,
            session_type=self._session_type,
            expected_minutes=self._expected_minutes,
            remaining_ms=remaining,
            total_ms=self._total_ms,
            task_id=self._task_id,
        )
