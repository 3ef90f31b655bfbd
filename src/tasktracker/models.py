from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class UnknownStatusError(ValueError):
    """Raised when a status label is neither Pending nor Done."""


class TaskStatus(str, Enum):
    PENDING = "Pending"
    DONE = "Done"

    @property
    def code(self) -> int:
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> TaskStatus:
        return cls.DONE if code == _STATUS_CODES[cls.DONE] else cls.PENDING


_STATUS_CODES = {TaskStatus.PENDING: 0, TaskStatus.DONE: 1}

# Labels accepted when parsing, including the Portuguese ones older clients send.
_PENDING_LABELS = {"Pending", "Pendente"}
_DONE_LABELS = {"Done", "Finalizado"}


def parse_status(label: str, strict: bool = True) -> TaskStatus:
    """Map a status label to a TaskStatus.

    In lenient mode anything that is not a Pending label counts as Done.
    """
    if label in _PENDING_LABELS:
        return TaskStatus.PENDING
    if label in _DONE_LABELS or not strict:
        return TaskStatus.DONE
    raise UnknownStatusError(f"Unknown status {label!r} (expected Pending or Done)")


class TaskIn(BaseModel):
    # Clients sometimes echo the id back; it is accepted and ignored.
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    title: str = ""
    description: str | None = None
    due_date: date | None = None
    status: TaskStatus = TaskStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _status_label(cls, value):
        if isinstance(value, str) and not isinstance(value, TaskStatus):
            return parse_status(value)
        return value


class Task(BaseModel):
    id: int
    title: str
    description: str | None = None
    due_date: date | None = None
    status: TaskStatus = TaskStatus.PENDING
