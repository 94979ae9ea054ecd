"""Polling daemon that executes persisted one-shot and periodic jobs."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Mapping, Optional

from .errors import JobStoreError, PermanentJobError
from .jobs import JobHandler, ScheduledJob
from .store import JobStore

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 30.0


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class DeferredJobScheduler:
    """Runs handlers for jobs whose fire instant has passed.

    Jobs live in a `JobStore` on disk, so a job armed by a process that has
    since exited still fires on the next start, late but never early. Every
    armed job is delivered to its handler at most once per attempt; failed
    one-shot jobs are retried until `max_attempts` is reached.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        logger: Optional[logging.Logger] = None,
        now_ms_fn: Optional[Callable[[], int]] = None,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be greater than zero")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._store = store
        self._poll_interval_seconds = poll_interval_seconds
        self._max_attempts = int(max_attempts)
        self._retry_delay_ms = int(retry_delay_seconds * 1000)
        self._logger = logger or logging.getLogger("scheduler")
        self._now_ms = now_ms_fn or _wall_clock_ms

        self._handlers: dict[str, JobHandler] = {}
        self._handlers_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def register(self, kind: str, handler: JobHandler) -> None:
        with self._handlers_lock:
            self._handlers[kind] = handler

    def arm(
        self,
        slot: str,
        kind: str,
        fire_at_ms: int,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ScheduledJob:
        """Schedule a one-shot job, atomically replacing any job in `slot`."""
        job = ScheduledJob(
            slot=slot,
            kind=kind,
            fire_at_ms=int(fire_at_ms),
            token=uuid.uuid4().hex,
            payload=dict(payload or {}),
        )
        self._store.put(job)
        self._logger.debug("Armed job %s (%s) for %d", slot, kind, job.fire_at_ms)
        return job

    def arm_periodic(
        self,
        slot: str,
        kind: str,
        period_ms: int,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ScheduledJob:
        """Schedule a repeating job, replacing any job in `slot`."""
        if period_ms <= 0:
            raise ValueError("period_ms must be greater than zero")
        job = ScheduledJob(
            slot=slot,
            kind=kind,
            fire_at_ms=self._now_ms() + int(period_ms),
            token=uuid.uuid4().hex,
            payload=dict(payload or {}),
            period_ms=int(period_ms),
        )
        self._store.put(job)
        self._logger.info("Armed periodic job %s every %ds", slot, period_ms // 1000)
        return job

    def cancel(self, slot: str) -> None:
        if self._store.delete(slot):
            self._logger.debug("Cancelled job %s", slot)

    def pending(self, slot: str) -> Optional[ScheduledJob]:
        return self._store.get(slot)

    def run_due(self) -> int:
        """Execute every due job once; returns the number of handler runs."""
        with self._run_lock:
            now = self._now_ms()
            executed = 0
            for job in self._store.due(now):
                if job.is_periodic:
                    executed += self._run_periodic(job, now)
                else:
                    executed += self._run_once(job, now)
            return executed

    def start(self) -> None:
        if self.is_running:
            self._logger.warning("Scheduler is already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="deferred-scheduler",
        )
        self._thread.start()
        self._logger.info("Scheduler started (poll interval %.1fs)", self._poll_interval_seconds)

    def stop(self, timeout_seconds: float = 5.0) -> None:
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=timeout_seconds)
        if self._thread.is_alive():
            self._logger.error(
                "Scheduler thread did not stop within %.1fs",
                timeout_seconds,
            )
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_due()
            except JobStoreError as error:
                self._logger.error("Scheduler poll failed: %s", error)
            self._stop_event.wait(self._poll_interval_seconds)

    def _handler_for(self, kind: str) -> Optional[JobHandler]:
        with self._handlers_lock:
            return self._handlers.get(kind)

    def _run_once(self, job: ScheduledJob, now: int) -> int:
        handler = self._handler_for(job.kind)
        if not self._store.claim_once(job):
            return 0
        if handler is None:
            self._logger.error("Dropping job %s: no handler for kind %s", job.slot, job.kind)
            return 0

        attempt = job.attempts + 1
        try:
            handler(job.payload)
        except PermanentJobError as error:
            self._logger.error("Job %s failed permanently: %s", job.slot, error)
        except Exception as error:
            self._retry_or_drop(job, attempt, now, error)
        else:
            self._logger.info(
                "Job %s (%s) completed (attempt %d, %dms late)",
                job.slot,
                job.kind,
                attempt,
                max(0, now - job.fire_at_ms),
            )
        return 1

    def _retry_or_drop(
        self,
        job: ScheduledJob,
        attempt: int,
        now: int,
        error: Exception,
    ) -> None:
        if attempt >= self._max_attempts:
            self._logger.error(
                "Job %s failed after %d attempts, dropping: %s",
                job.slot,
                attempt,
                error,
                exc_info=True,
            )
            return

        retry = ScheduledJob(
            slot=job.slot,
            kind=job.kind,
            fire_at_ms=now + self._retry_delay_ms,
            token=job.token,
            payload=job.payload,
            attempts=attempt,
        )
        # A job armed into the slot meanwhile supersedes the retry.
        if self._store.put_if_absent(retry):
            self._logger.warning(
                "Job %s failed (attempt %d/%d), retrying in %ds: %s",
                job.slot,
                attempt,
                self._max_attempts,
                self._retry_delay_ms // 1000,
                error,
            )
        else:
            self._logger.warning(
                "Job %s failed and was superseded by a newer job: %s",
                job.slot,
                error,
            )

    def _run_periodic(self, job: ScheduledJob, now: int) -> int:
        period = job.period_ms or 0
        next_fire_at = job.fire_at_ms + period
        if next_fire_at <= now:
            # Skip firings missed while no process was polling.
            next_fire_at = now + period
        if not self._store.claim_periodic(job, next_fire_at):
            return 0

        handler = self._handler_for(job.kind)
        if handler is None:
            self._logger.error("No handler for periodic job kind %s", job.kind)
            return 0

        try:
            handler(job.payload)
        except Exception as error:
            self._logger.error("Periodic job %s failed: %s", job.slot, error, exc_info=True)
        return 1
