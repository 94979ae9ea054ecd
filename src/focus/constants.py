"""Phase, action, reason, and slot constants used by focus timer logic."""

from __future__ import annotations

from enum import Enum


class SessionType(str, Enum):
    WORK = "WORK"
    BREAK = "BREAK"


MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND

DEFAULT_WORK_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5
MIN_BREAK_REMINDER_MINUTES = 15

PHASE_IDLE = "idle"
PHASE_RUNNING = "running"
PHASE_PAUSED = "paused"

ACTIVE_PHASES: frozenset[str] = frozenset({PHASE_RUNNING, PHASE_PAUSED})

ACTION_START = "start"
ACTION_PAUSE = "pause"
ACTION_RESUME = "resume"
ACTION_CANCEL = "cancel"
ACTION_SET_SESSION_TYPE = "set_session_type"
ACTION_RESTORE = "restore"

ACTION_SYNC = "sync"
ACTION_TICK = "tick"
ACTION_COMPLETED = "completed"

REASON_STARTED = "started"
REASON_PAUSED = "paused"
REASON_RESUMED = "resumed"
REASON_CANCELLED = "cancelled"
REASON_TYPE_SELECTED = "type_selected"
REASON_INVALID_DURATION = "invalid_duration"
REASON_NOT_RUNNING = "not_running"
REASON_NOT_PAUSED = "not_paused"
REASON_NO_REMAINING = "no_remaining"
REASON_SESSION_ACTIVE = "session_active"
REASON_RESTORED_RUNNING = "restored_running"
REASON_RESTORED_PAUSED = "restored_paused"
REASON_RESTORED_EXPIRED = "restored_expired"
REASON_NOTHING_TO_RESTORE = "nothing_to_restore"

REASON_TICK = "tick"
REASON_COMPLETED = "completed"
REASON_STARTUP = "startup"

# Scheduler slot identities and job kinds.
SESSION_END_SLOT = "session_end_work"
BREAK_REMINDER_SLOT = "break_reminders"
JOB_SESSION_END = "session_end"
JOB_BREAK_REMINDER = "break_reminder"

# Notification channels.
CHANNEL_SESSION = "session_notifications"
CHANNEL_TASK = "task_notifications"
