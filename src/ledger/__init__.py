"""Entity store for projects, tasks and completed sessions."""

from .errors import LedgerError
from .models import Project, SessionLogRecord, Task
from .repository import FocusRepository

__all__ = [
    "FocusRepository",
    "LedgerError",
    "Project",
    "SessionLogRecord",
    "Task",
]
