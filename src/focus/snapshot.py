"""Durable JSON snapshot of the timer's authoritative fields."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from .constants import SessionType


class SnapshotPersistenceError(Exception):
    """Raised when the timer snapshot cannot be written or cleared."""


@dataclass(frozen=True)
class DurableSnapshot:
    """On-disk projection of the timer state used for restart recovery."""
    running: bool
    start_ms: int
    end_ms: int
    expected_minutes: int
    session_type: SessionType
    task_id: Optional[int] = None
    paused_remaining_ms: int = 0

    @property
    def has_session(self) -> bool:
        return self.expected_minutes > 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "running": self.running,
            "start": self.start_ms,
            "end": self.end_ms,
            "expected": self.expected_minutes,
            "type": self.session_type.value,
            "task_id": self.task_id if self.task_id is not None else -1,
        }
        # The paused remainder only exists while the session is not running.
        if not self.running:
            payload["paused_remaining"] = self.paused_remaining_ms
        return payload

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DurableSnapshot":
        running = raw.get("running", False)
        if not isinstance(running, bool):
            raise ValueError("running must be a boolean")
        task_id = _as_int(raw.get("task_id", -1), "task_id")
        return cls(
            running=running,
            start_ms=_as_int(raw.get("start", 0), "start"),
            end_ms=_as_int(raw.get("end", 0), "end"),
            expected_minutes=_as_int(raw.get("expected", 0), "expected"),
            session_type=SessionType(str(raw.get("type", SessionType.WORK.value))),
            task_id=task_id if task_id > 0 else None,
            paused_remaining_ms=_as_int(
                raw.get("paused_remaining", 0),
                "paused_remaining",
            ),
        )


class SnapshotStoreLike(Protocol):
    def write(self, snapshot: DurableSnapshot) -> None:
        ...

    def read(self) -> Optional[DurableSnapshot]:
        ...

    def clear(self) -> None:
        ...


class SnapshotStore:
    """Atomically replaced JSON file holding the latest timer snapshot."""

    def __init__(self, path: str | Path, logger: Optional[logging.Logger] = None):
        self._path = Path(path)
        self._logger = logger or logging.getLogger("focus.snapshot")

    @property
    def path(self) -> Path:
        return self._path

    def write(self, snapshot: DurableSnapshot) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(snapshot.to_dict(), fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self._path)
        except OSError as error:
            raise SnapshotPersistenceError(
                f"Failed to write timer snapshot {self._path}: {error}"
            ) from error

    def read(self) -> Optional[DurableSnapshot]:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as error:
            self._logger.warning("Failed to read timer snapshot %s: %s", self._path, error)
            return None

        try:
            raw = json.loads(data.decode("utf-8"))
            if not isinstance(raw, Mapping):
                raise ValueError("snapshot root must be an object")
            return DurableSnapshot.from_dict(raw)
        except ValueError as error:
            self._logger.warning("Ignoring malformed timer snapshot %s: %s", self._path, error)
            return None

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as error:
            raise SnapshotPersistenceError(
                f"Failed to clear timer snapshot {self._path}: {error}"
            ) from error


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer")
    return value
