"""Status and response text builders for timer flows."""

from __future__ import annotations

from contracts.ui_protocol import STATE_IDLE, STATE_PAUSED, STATE_RUNNING
from focus import SessionType, TimerSnapshot
from focus.clock import format_duration
from focus.constants import (
    ACTION_CANCEL,
    ACTION_COMPLETED,
    ACTION_PAUSE,
    ACTION_RESUME,
    ACTION_SET_SESSION_TYPE,
    ACTION_START,
    PHASE_PAUSED,
    PHASE_RUNNING,
    REASON_INVALID_DURATION,
    REASON_NO_REMAINING,
    REASON_NOT_PAUSED,
    REASON_NOT_RUNNING,
    REASON_SESSION_ACTIVE,
)

READY_MESSAGE = "Ready"


def session_label(session_type: SessionType) -> str:
    return "Work session" if session_type == SessionType.WORK else "Break"


def runtime_state(snapshot: TimerSnapshot) -> str:
    if snapshot.phase == PHASE_RUNNING:
        return STATE_RUNNING
    if snapshot.phase == PHASE_PAUSED:
        return STATE_PAUSED
    return STATE_IDLE


def timer_status_message(snapshot: TimerSnapshot) -> str:
    """Build status text for the current timer snapshot."""
    label = session_label(snapshot.session_type)
    if snapshot.phase == PHASE_RUNNING:
        return f"{label} running ({format_duration(snapshot.remaining_ms)} remaining)"
    if snapshot.phase == PHASE_PAUSED:
        return f"{label} paused ({format_duration(snapshot.remaining_ms)} remaining)"
    return READY_MESSAGE


def default_timer_text(action: str, snapshot: TimerSnapshot) -> str:
    """Return text for accepted timer actions."""
    label = session_label(snapshot.session_type)
    if action == ACTION_START:
        return f"{label} started for {snapshot.expected_minutes} min."
    if action == ACTION_RESUME:
        return f"{label} resumed."
    if action == ACTION_PAUSE:
        return f"{label} paused with {format_duration(snapshot.remaining_ms)} left."
    if action == ACTION_CANCEL:
        return "Session cancelled."
    if action == ACTION_SET_SESSION_TYPE:
        return f"Next session: {label.lower()}."
    if action == ACTION_COMPLETED:
        return f"{label} complete. Time's up!"
    return "Timer updated."


def timer_rejection_text(action: str, reason: str) -> str:
    """Return text for timer actions that do not apply in the current state."""
    if reason == REASON_INVALID_DURATION:
        return "The session length must be a positive number of minutes."
    if reason == REASON_NOT_RUNNING and action == ACTION_PAUSE:
        return "No session is running."
    if reason == REASON_NOT_PAUSED and action == ACTION_RESUME:
        return "The session is not paused."
    if reason == REASON_NO_REMAINING:
        return "The paused session has no time left. Cancel it to start over."
    if reason == REASON_SESSION_ACTIVE:
        return "The session type cannot change while a session is active."
    return "That timer action is not possible right now."
