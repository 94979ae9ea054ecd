"""SQLite entity store for projects, tasks and the session log."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import LedgerError
from .models import Project, SessionLogRecord, Task

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    expected_minutes INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at_ms INTEGER
);

CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    project_id INTEGER REFERENCES projects(id) ON DELETE CASCADE,
    expected_minutes INTEGER NOT NULL DEFAULT 0,
    actual_minutes INTEGER NOT NULL DEFAULT 0,
    is_completed INTEGER NOT NULL DEFAULT 0,
    alarm_on_completion INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    completed_at_ms INTEGER
);

CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id);

CREATE TABLE IF NOT EXISTS session_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id INTEGER,
    session_type TEXT NOT NULL,
    start_ms INTEGER NOT NULL,
    end_ms INTEGER NOT NULL,
    expected_minutes INTEGER NOT NULL,
    actual_minutes INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_session_logs_task ON session_logs(task_id);
"""

_PROJECT_COLUMNS = "id, name, expected_minutes, description, is_completed, completed_at_ms"
_TASK_COLUMNS = (
    "id, title, project_id, expected_minutes, actual_minutes, is_completed, "
    "alarm_on_completion, description, completed_at_ms"
)
_LOG_COLUMNS = "id, task_id, session_type, start_ms, end_ms, expected_minutes, actual_minutes"


class FocusRepository:
    """Projects, tasks and session logs stored in one SQLite file.

    Every call opens its own connection, so the repository can be shared
    between the runtime thread and the scheduler thread.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        timeout_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._path = Path(path)
        self._timeout_seconds = timeout_seconds
        self._logger = logger or logging.getLogger("ledger")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise LedgerError(f"Cannot create database directory: {error}") from error
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        self._logger.debug("Entity store ready at %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    # Projects

    def upsert_project(self, project: Project) -> int:
        values = (
            project.name,
            int(project.expected_minutes),
            project.description,
            int(project.is_completed),
            project.completed_at_ms,
        )
        with self._connect() as conn:
            if project.id is None:
                cur = conn.execute(
                    "INSERT INTO projects (name, expected_minutes, description, "
                    "is_completed, completed_at_ms) VALUES (?, ?, ?, ?, ?)",
                    values,
                )
                return int(cur.lastrowid)
            # Update in place; a REPLACE would cascade-delete the project's tasks.
            cur = conn.execute(
                "UPDATE projects SET name = ?, expected_minutes = ?, description = ?, "
                "is_completed = ?, completed_at_ms = ? WHERE id = ?",
                (*values, project.id),
            )
            if cur.rowcount == 0:
                conn.execute(
                    f"INSERT INTO projects ({_PROJECT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (project.id, *values),
                )
            return int(project.id)

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?",
                (project_id,),
            ).fetchone()
        return _project(row) if row else None

    def list_projects(self) -> list[Project]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY name, id"
            ).fetchall()
        return [_project(row) for row in rows]

    def delete_project(self, project_id: int) -> bool:
        """Delete a project; its tasks are removed with it."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            return cur.rowcount == 1

    # Tasks

    def upsert_task(self, task: Task) -> int:
        values = (
            task.title,
            task.project_id,
            int(task.expected_minutes),
            int(task.actual_minutes),
            int(task.is_completed),
            int(task.alarm_on_completion),
            task.description,
            task.completed_at_ms,
        )
        with self._connect() as conn:
            if task.id is None:
                cur = conn.execute(
                    "INSERT INTO tasks (title, project_id, expected_minutes, "
                    "actual_minutes, is_completed, alarm_on_completion, description, "
                    "completed_at_ms) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
                return int(cur.lastrowid)
            cur = conn.execute(
                "UPDATE tasks SET title = ?, project_id = ?, expected_minutes = ?, "
                "actual_minutes = ?, is_completed = ?, alarm_on_completion = ?, "
                "description = ?, completed_at_ms = ? WHERE id = ?",
                (*values, task.id),
            )
            if cur.rowcount == 0:
                conn.execute(
                    f"INSERT INTO tasks ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (task.id, *values),
                )
            return int(task.id)

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?",
                (task_id,),
            ).fetchone()
        return _task(row) if row else None

    def list_tasks(self, project_id: Optional[int] = None) -> list[Task]:
        """Tasks with incomplete ones first, newest first within each group."""
        query = f"SELECT {_TASK_COLUMNS} FROM tasks"
        params: tuple = ()
        if project_id is not None:
            query += " WHERE project_id = ?"
            params = (project_id,)
        query += " ORDER BY is_completed ASC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_task(row) for row in rows]

    def delete_task(self, task_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount == 1

    # Session log

    def append_session_log(self, record: SessionLogRecord) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO session_logs (task_id, session_type, start_ms, end_ms, "
                "expected_minutes, actual_minutes) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.task_id,
                    str(record.session_type),
                    int(record.start_ms),
                    int(record.end_ms),
                    int(record.expected_minutes),
                    int(record.actual_minutes),
                ),
            )
            log_id = int(cur.lastrowid)
        self._logger.info(
            "Logged %s session: %d min (task=%s)",
            record.session_type,
            record.actual_minutes,
            record.task_id,
        )
        return log_id

    def list_session_logs(self, task_id: Optional[int] = None) -> list[SessionLogRecord]:
        query = f"SELECT {_LOG_COLUMNS} FROM session_logs"
        params: tuple = ()
        if task_id is not None:
            query += " WHERE task_id = ?"
            params = (task_id,)
        query += " ORDER BY start_ms DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_log(row) for row in rows]

    def sum_session_minutes(self, task_id: int, session_type: Optional[str] = None) -> int:
        query = "SELECT COALESCE(SUM(actual_minutes), 0) FROM session_logs WHERE task_id = ?"
        params: tuple = (task_id,)
        if session_type is not None:
            query += " AND session_type = ?"
            params = (task_id, str(session_type))
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        return int(row[0]) if row else 0

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self._path), timeout=self._timeout_seconds)
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as error:
            raise LedgerError(f"Cannot open database {self._path}: {error}") from error
        try:
            with conn:
                yield conn
        except sqlite3.Error as error:
            raise LedgerError(f"Database operation failed: {error}") from error
        finally:
            conn.close()


def _project(row: tuple) -> Project:
    project_id, name, expected, description, completed, completed_at = row
    return Project(
        id=int(project_id),
        name=name,
        expected_minutes=int(expected),
        description=description,
        is_completed=bool(completed),
        completed_at_ms=completed_at,
    )


def _task(row: tuple) -> Task:
    (
        task_id,
        title,
        project_id,
        expected,
        actual,
        completed,
        alarm,
        description,
        completed_at,
    ) = row
    return Task(
        id=int(task_id),
        title=title,
        project_id=project_id,
        expected_minutes=int(expected),
        actual_minutes=int(actual),
        is_completed=bool(completed),
        alarm_on_completion=bool(alarm),
        description=description,
        completed_at_ms=completed_at,
    )


def _log(row: tuple) -> SessionLogRecord:
    log_id, task_id, session_type, start_ms, end_ms, expected, actual = row
    return SessionLogRecord(
        id=int(log_id),
        task_id=task_id,
        session_type=session_type,
        start_ms=int(start_ms),
        end_ms=int(end_ms),
        expected_minutes=int(expected),
        actual_minutes=int(actual),
    )
