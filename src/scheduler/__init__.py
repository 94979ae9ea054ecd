"""Persistent deferred job scheduling."""

from .errors import JobStoreError, PermanentJobError, SchedulerError
from .jobs import JobHandler, ScheduledJob
from .service import DeferredJobScheduler
from .store import JobStore

__all__ = [
    "DeferredJobScheduler",
    "JobHandler",
    "JobStore",
    "JobStoreError",
    "PermanentJobError",
    "ScheduledJob",
    "SchedulerError",
]
