# tests/conftest.py

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tasktracker.api import create_app
from tasktracker.models import Task, TaskIn, TaskStatus
from tasktracker.store import TaskStore

TODAY = date.today()
TOMORROW = TODAY + timedelta(days=1)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite")


@pytest.fixture()
def seeded(store: TaskStore) -> dict[str, Task]:
    """
    Three tasks shared by most tests:
    A and B are due today, C tomorrow; A and C are pending, B is done.
    """
    with store.session() as s:
        return {
            "A": s.create(TaskIn(title="Study X", description="Read chapter 1",
                                 due_date=TODAY, status=TaskStatus.PENDING)),
            "B": s.create(TaskIn(title="Study Y", description="Review notes",
                                 due_date=TODAY, status=TaskStatus.DONE)),
            "C": s.create(TaskIn(title="Project", description="Write tests",
                                 due_date=TOMORROW, status=TaskStatus.PENDING)),
        }


@pytest.fixture()
def client(store: TaskStore, seeded: dict[str, Task]) -> TestClient:
    return TestClient(create_app(store))


@pytest.fixture()
def lenient_client(store: TaskStore, seeded: dict[str, Task]) -> TestClient:
    return TestClient(create_app(store, strict_status=False))
