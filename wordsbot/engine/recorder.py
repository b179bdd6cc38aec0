"""Grading of answers to outstanding assignments."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger

from wordsbot.db.database import Database
from wordsbot.db.models import UserAnswer
from wordsbot.db.retry import StoreRetry, retrying
from wordsbot.errors import NoOutstandingAssignment

from .catalog import get_task
from .history import open_assignment_row, row_to_answer
from .locks import SessionLocks
from .scheduler import SchedulerConfig
from .session_filters import lock_state_row
from .types import GradedAnswer, answer_key_of, utcnow
from .users import mark_active


def normalize_answer(text: str) -> str:
    return " ".join(text.split()).casefold()


def check_answer(answer: str | bool, payload: dict[str, Any] | None) -> bool | None:
    """
    Compare an answer with the payload's answer key.

    A bool is taken as already graded by the transport. Returns None when the
    payload carries no answer key.
    """
    if isinstance(answer, bool):
        return answer
    accepted = answer_key_of(payload)
    if accepted is None:
        return None
    given = normalize_answer(answer)
    return any(normalize_answer(option) == given for option in accepted)


class AnswerRecorder:
    """Closes a chat's outstanding assignment with a graded answer."""

    def __init__(
        self,
        db: Database,
        config: SchedulerConfig | None = None,
        locks: SessionLocks | None = None,
        retry: StoreRetry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config or SchedulerConfig()
        self.locks = locks or SessionLocks()
        self.retry = retry or StoreRetry()
        self.clock = clock

    def grade(self, session_id: int, user_id: int, answer: str | bool) -> GradedAnswer:
        """
        Record the answer to the chat's outstanding task.

        Args:
            session_id: Chat the task was assigned to
            user_id: User who answered (must exist)
            answer: Answer text, or a bool when the transport already graded it

        Returns:
            The stored GradedAnswer; correct is None if the task's answer
            key could not be found

        Raises:
            NoOutstandingAssignment: nothing pending for the chat, or the
                pending task has expired
            NotFound: unknown user
        """
        with self.locks.hold(session_id):
            graded = self._grade(session_id, user_id, answer)
        if graded is None:
            raise NoOutstandingAssignment(session_id)
        return graded

    @retrying
    def _grade(self, session_id: int, user_id: int, answer: str | bool) -> GradedAnswer | None:
        now = self.clock()
        with self.db.session_scope() as session:
            lock_state_row(session, session_id)

            row = open_assignment_row(session, session_id)
            if row is None:
                return None
            if now - row.assigned_at >= self.config.assignment_timeout:
                # Too late; close it so the chat goes back to idle
                row.closed_at = now
                logger.debug("#{} answer for expired task {}", session_id, row.task_id)
                return None

            task = get_task(session, row.task_id)
            if task is not None:
                payload = task.payload
            else:
                payload = (row.task_snapshot or {}).get("task")
            correct = check_answer(answer, payload)

            answered_at = max(now, row.assigned_at)
            mark_active(session, user_id, answered_at)

            graded = UserAnswer(
                uid=user_id,
                task_id=row.task_id,
                correct=correct,
                asked_at=row.assigned_at,
                answered_at=answered_at,
            )
            session.add(graded)
            session.flush()

            row.answer_id = graded.id
            row.closed_at = answered_at

            logger.debug("#{} got answer for task {} correct={}", session_id, row.task_id, correct)
            return row_to_answer(graded)
