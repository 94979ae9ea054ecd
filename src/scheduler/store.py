"""SQLite job table backing the deferred scheduler."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import JobStoreError
from .jobs import ScheduledJob

_SCHEMA = """
CREATE TABLE IF NOT EXISTS scheduled_jobs (
    slot TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    fire_at_ms INTEGER NOT NULL,
    period_ms INTEGER,
    payload TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    token TEXT NOT NULL
)
"""

_COLUMNS = "slot, kind, fire_at_ms, period_ms, payload, attempts, token"


class JobStore:
    """Persistent slot -> job mapping; rows outlive the process that armed them."""

    def __init__(self, path: str | Path, *, timeout_seconds: float = 5.0):
        self._path = Path(path)
        self._timeout_seconds = timeout_seconds
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise JobStoreError(f"Cannot create job store directory: {error}") from error
        with self._connect() as conn:
            conn.execute(_SCHEMA)

    @property
    def path(self) -> Path:
        return self._path

    def put(self, job: ScheduledJob) -> None:
        """Insert the job, replacing whatever occupies its slot."""
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO scheduled_jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                _row(job),
            )

    def put_if_absent(self, job: ScheduledJob) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                f"INSERT OR IGNORE INTO scheduled_jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                _row(job),
            )
            return cur.rowcount == 1

    def delete(self, slot: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM scheduled_jobs WHERE slot = ?", (slot,))
            return cur.rowcount == 1

    def get(self, slot: str) -> Optional[ScheduledJob]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM scheduled_jobs WHERE slot = ?",
                (slot,),
            ).fetchone()
        return _job(row) if row else None

    def due(self, now_ms: int) -> list[ScheduledJob]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM scheduled_jobs WHERE fire_at_ms <= ? "
                "ORDER BY fire_at_ms, slot",
                (now_ms,),
            ).fetchall()
        return [_job(row) for row in rows]

    def claim_once(self, job: ScheduledJob) -> bool:
        """Remove a one-shot job; only one caller can win a given token."""
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM scheduled_jobs WHERE slot = ? AND token = ?",
                (job.slot, job.token),
            )
            return cur.rowcount == 1

    def claim_periodic(self, job: ScheduledJob, next_fire_at_ms: int) -> bool:
        """Advance a periodic job to its next firing if nobody else did."""
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE scheduled_jobs SET fire_at_ms = ? "
                "WHERE slot = ? AND token = ? AND fire_at_ms = ?",
                (next_fire_at_ms, job.slot, job.token, job.fire_at_ms),
            )
            return cur.rowcount == 1

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self._path), timeout=self._timeout_seconds)
        except sqlite3.Error as error:
            raise JobStoreError(f"Cannot open job store {self._path}: {error}") from error
        try:
            with conn:
                yield conn
        except sqlite3.Error as error:
            raise JobStoreError(f"Job store operation failed: {error}") from error
        finally:
            conn.close()


def _row(job: ScheduledJob) -> tuple:
    return (
        job.slot,
        job.kind,
        int(job.fire_at_ms),
        job.period_ms,
        json.dumps(dict(job.payload)),
        job.attempts,
        job.token,
    )


def _job(row: tuple) -> ScheduledJob:
    slot, kind, fire_at_ms, period_ms, payload, attempts, token = row
    try:
        decoded = json.loads(payload)
    except ValueError:
        decoded = {}
    return ScheduledJob(
        slot=slot,
        kind=kind,
        fire_at_ms=int(fire_at_ms),
        token=token,
        payload=decoded if isinstance(decoded, dict) else {},
        period_ms=int(period_ms) if period_ms is not None else None,
        attempts=int(attempts),
    )
