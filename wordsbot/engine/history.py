"""
Read side of the assignment and answer log.

Task ids in the log are soft references. Anything that no longer resolves
comes back as UnknownTask instead of failing the read.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from wordsbot.db.database import Database
from wordsbot.db.models import TaskInfo, UserAnswer, UserTask
from wordsbot.db.retry import StoreRetry, retrying

from .catalog import row_to_task
from .types import Assignment, AnswerRecord, AssignmentRecord, GradedAnswer, Task, UnknownTask


@dataclass
class TaskHistory:
    """What one chat has done with one task so far."""

    task_id: int
    last_asked_at: datetime | None = None
    last_answered_at: datetime | None = None
    last_correct: bool | None = None
    last_wrong_at: datetime | None = None

    @property
    def asked(self) -> bool:
        return self.last_asked_at is not None


def row_to_assignment(row: UserTask) -> Assignment:
    return Assignment(
        id=row.id,
        session_id=row.chat_id,
        task_id=row.task_id,
        assigned_at=row.assigned_at,
        closed_at=row.closed_at,
        answer_id=row.answer_id,
        task_snapshot=row.task_snapshot,
    )


def row_to_answer(row: UserAnswer) -> GradedAnswer:
    return GradedAnswer(
        id=row.id,
        uid=row.uid,
        task_id=row.task_id,
        correct=row.correct,
        asked_at=row.asked_at,
        answered_at=row.answered_at,
    )


def open_assignment_row(session: Session, session_id: int) -> UserTask | None:
    """The chat's outstanding assignment row, newest first if there were ever several."""
    return session.scalars(
        select(UserTask)
        .where(UserTask.chat_id == session_id, UserTask.closed_at.is_(None))
        .order_by(UserTask.id.desc())
        .limit(1)
    ).first()


def load_session_history(session: Session, session_id: int) -> dict[int, TaskHistory]:
    """Per task: when it was last asked and how it was last answered in this chat."""
    rows = session.execute(
        select(
            UserTask.task_id,
            UserTask.assigned_at,
            UserAnswer.correct,
            UserAnswer.answered_at,
        )
        .outerjoin(UserAnswer, UserAnswer.id == UserTask.answer_id)
        .where(UserTask.chat_id == session_id)
    ).all()

    history: dict[int, TaskHistory] = {}
    for task_id, assigned_at, correct, answered_at in rows:
        entry = history.setdefault(task_id, TaskHistory(task_id))
        if entry.last_asked_at is None or assigned_at > entry.last_asked_at:
            entry.last_asked_at = assigned_at
        if answered_at is None:
            continue
        if entry.last_answered_at is None or answered_at >= entry.last_answered_at:
            entry.last_answered_at = answered_at
            entry.last_correct = correct
        if correct is False and (entry.last_wrong_at is None or answered_at > entry.last_wrong_at):
            entry.last_wrong_at = answered_at
    return history


def resolve_tasks(session: Session, task_ids: Iterable[int]) -> dict[int, Task | UnknownTask]:
    ids = set(task_ids)
    if not ids:
        return {}
    found = {row.id: row_to_task(row) for row in session.scalars(select(TaskInfo).where(TaskInfo.id.in_(ids)))}
    return {task_id: found.get(task_id) or UnknownTask(task_id) for task_id in ids}


class AnswerHistory:
    """Assignments and graded answers, with task references resolved."""

    def __init__(self, db: Database, retry: StoreRetry | None = None):
        self.db = db
        self.retry = retry or StoreRetry()

    @retrying
    def outstanding(self, session_id: int) -> Assignment | None:
        """The open assignment for a chat, expired or not."""
        with self.db.session_scope() as session:
            row = open_assignment_row(session, session_id)
            return row_to_assignment(row) if row is not None else None

    @retrying
    def assignments(self, session_id: int, limit: int | None = None) -> list[AssignmentRecord]:
        """Assignments for a chat, oldest first (the most recent ``limit`` if given)."""
        with self.db.session_scope() as session:
            stmt = select(UserTask).where(UserTask.chat_id == session_id).order_by(UserTask.id.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = list(reversed(session.scalars(stmt).all()))

            answer_ids = [row.answer_id for row in rows if row.answer_id is not None]
            answers = {}
            if answer_ids:
                answers = {
                    a.id: row_to_answer(a)
                    for a in session.scalars(select(UserAnswer).where(UserAnswer.id.in_(answer_ids)))
                }
            tasks = resolve_tasks(session, (row.task_id for row in rows))

            return [
                AssignmentRecord(
                    assignment=row_to_assignment(row),
                    task=tasks[row.task_id],
                    answer=answers.get(row.answer_id),
                )
                for row in rows
            ]

    @retrying
    def answers(self, uid: int) -> list[AnswerRecord]:
        """Graded answers of a user, oldest first."""
        with self.db.session_scope() as session:
            rows = session.scalars(
                select(UserAnswer).where(UserAnswer.uid == uid).order_by(UserAnswer.answered_at, UserAnswer.id)
            ).all()
            tasks = resolve_tasks(session, (row.task_id for row in rows))
            return [AnswerRecord(answer=row_to_answer(row), task=tasks[row.task_id]) for row in rows]

    @retrying
    def session_stats(self, session_id: int) -> dict[int, TaskHistory]:
        with self.db.session_scope() as session:
            return load_session_history(session, session_id)
