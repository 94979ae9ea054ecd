from .completion import CompletionPayload, SessionCompletionHandler
from .constants import SessionType
from .service import (
    FocusTimer,
    TimerAction,
    TimerActionResult,
    TimerPhase,
    TimerSnapshot,
    TimerTick,
)
from .snapshot import DurableSnapshot, SnapshotPersistenceError, SnapshotStore

__all__ = [
    "CompletionPayload",
    "DurableSnapshot",
    "FocusTimer",
    "SessionCompletionHandler",
    "SessionType",
    "SnapshotPersistenceError",
    "SnapshotStore",
    "TimerAction",
    "TimerActionResult",
    "TimerPhase",
    "TimerSnapshot",
    "TimerTick",
]
