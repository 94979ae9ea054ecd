class SchedulerError(Exception):
    """Base exception for deferred job scheduling."""


class JobStoreError(SchedulerError):
    """Raised when the persistent job table cannot be read or written."""


class PermanentJobError(SchedulerError):
    """Raised by a job handler when retrying the job can never succeed."""
