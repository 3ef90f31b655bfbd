from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from datetime import date
from pathlib import Path

from tasktracker.models import Task, TaskIn, TaskStatus

logger = logging.getLogger(__name__)

_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL DEFAULT '',
        description TEXT,
        due_date TEXT,
        status INTEGER NOT NULL DEFAULT 0
    );
    CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date);
    CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
"""


def _row_to_task(row: sqlite3.Row) -> Task:
    due = row["due_date"]
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        due_date=date.fromisoformat(due) if due else None,
        status=TaskStatus.from_code(row["status"]),
    )


def _task_params(task: TaskIn) -> tuple:
    return (
        task.title,
        task.description,
        task.due_date.isoformat() if task.due_date else None,
        task.status.code,
    )


class TaskSession:
    """Task operations bound to one open connection.

    Every write commits before returning. Lookups by id report a missing
    task by returning None (or False for delete), never by raising.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _fetch_row(self, task_id: int | None) -> sqlite3.Row | None:
        # Ids outside SQLite's 64-bit INTEGER range can never be stored.
        if task_id is None or not _MIN_ID <= task_id <= _MAX_ID:
            return None
        return self._conn.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()

    def _select(self, where: str = "", params: tuple = ()) -> list[Task]:
        sql = "SELECT * FROM tasks"
        if where:
            sql += f" WHERE {where}"
        rows = self._conn.execute(sql + " ORDER BY id", params).fetchall()
        return [_row_to_task(r) for r in rows]

    def get(self, task_id: int | None) -> Task | None:
        row = self._fetch_row(task_id)
        return _row_to_task(row) if row else None

    def create(self, task: TaskIn) -> Task:
        cur = self._conn.execute(
            "INSERT INTO tasks (title, description, due_date, status) VALUES (?, ?, ?, ?)",
            _task_params(task),
        )
        self._conn.commit()
        logger.info("Created task %s", cur.lastrowid)
        return self.get(cur.lastrowid)

    def update(self, task_id: int, task: TaskIn) -> Task | None:
        if self._fetch_row(task_id) is None:
            return None
        self._conn.execute(
            "UPDATE tasks SET title = ?, description = ?, due_date = ?, status = ? WHERE id = ?",
            (*_task_params(task), task_id),
        )
        self._conn.commit()
        logger.info("Updated task %s", task_id)
        return self.get(task_id)

    def delete(self, task_id: int) -> bool:
        if self._fetch_row(task_id) is None:
            return False
        self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        self._conn.commit()
        logger.info("Deleted task %s", task_id)
        return True

    def list_all(self) -> list[Task]:
        return self._select()

    def filter_by_title(self, substring: str) -> list[Task]:
        # instr() is case-sensitive, unlike LIKE.
        return self._select("instr(title, ?) > 0", (substring,))

    def filter_by_date(self, day: date) -> list[Task]:
        return self._select("due_date = ?", (day.isoformat(),))

    def filter_by_status(self, status: TaskStatus) -> list[Task]:
        return self._select("status = ?", (status.code,))

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0]


class TaskStore:
    """SQLite-backed task store.

    Holds no open connection; each session() opens one and closes it on exit,
    so concurrent request handlers never share a connection.
    """

    def __init__(self, db_path: str | Path = "db.sqlite") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count())

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    @contextlib.contextmanager
    def session(self) -> Iterator[TaskSession]:
        conn = self._get_conn()
        try:
            yield TaskSession(conn)
        finally:
            conn.close()

    def count(self) -> int:
        with self.session() as s:
            return s.count()
