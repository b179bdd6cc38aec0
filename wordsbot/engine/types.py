"""Value objects passed between the engine and the transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .filters import TaskFilter

# Payload fields that hold the expected answer, in lookup order
ANSWER_KEY_FIELDS = ("correct", "answer", "a")


def answer_key_of(payload: dict[str, Any] | None) -> list[str] | None:
    """Return the accepted answers stored in a task payload, if any."""
    if not payload:
        return None
    for name in ANSWER_KEY_FIELDS:
        value = payload.get(name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            accepted = [str(v) for v in value if v is not None]
            return accepted or None
        return [str(value)]
    return None


@dataclass(frozen=True)
class Task:
    """An exercise as stored in the catalog."""

    id: int
    hash: int
    active: bool
    filters: dict[str, str]
    payload: dict[str, Any]

    known = True

    @property
    def answer_key(self) -> list[str] | None:
        return answer_key_of(self.payload)


@dataclass(frozen=True)
class UnknownTask:
    """Placeholder for a task id that no longer resolves to a catalog row."""

    id: int

    known = False


@dataclass
class User:
    uid: int
    full_name: str
    username: str | None = None
    created_at: datetime | None = None
    last_active_at: datetime | None = None


@dataclass(frozen=True)
class Assignment:
    """A task shown to a chat; open while closed_at is None."""

    id: int
    session_id: int
    task_id: int
    assigned_at: datetime
    closed_at: datetime | None = None
    answer_id: int | None = None
    task_snapshot: dict[str, Any] | None = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @property
    def expired(self) -> bool:
        return self.closed_at is not None and self.answer_id is None


@dataclass(frozen=True)
class GradedAnswer:
    id: int
    uid: int
    task_id: int
    correct: bool | None
    asked_at: datetime
    answered_at: datetime


@dataclass(frozen=True)
class NextTask:
    """Outcome of a successful scheduling call."""

    task: Task
    assignment: Assignment
    redelivered: bool = False
    expired: Assignment | None = None


@dataclass(frozen=True)
class Exhausted:
    """Nothing eligible under the session filter; the user should broaden it."""

    session_id: int
    filter: TaskFilter | None = None
    expired: Assignment | None = None


@dataclass(frozen=True)
class FilterInfo:
    name: str
    possible_values: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnswerStat:
    count: int
    correct: int

    @property
    def accuracy(self) -> float:
        """Share of correct answers (0.0 when nothing was answered)."""
        if self.count > 0:
            return self.correct / self.count
        return 0.0


@dataclass(frozen=True)
class SyncResult:
    upserted: int
    deactivated: int


@dataclass(frozen=True)
class AssignmentRecord:
    assignment: Assignment
    task: Task | UnknownTask
    answer: GradedAnswer | None = None


@dataclass(frozen=True)
class AnswerRecord:
    answer: GradedAnswer
    task: Task | UnknownTask


def utcnow() -> datetime:
    return datetime.now(UTC)
