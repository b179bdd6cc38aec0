"""
Next-task selection for chat sessions.

A chat is either idle or awaiting an answer to exactly one task. Picking the
next task and recording the assignment happen in one transaction while the
chat's lock is held, so a chat can never end up with two open assignments.

Selection order:
1. Active tasks matching the chat's filter
2. Minus tasks answered correctly within the cool-down window
3. Never asked first, then most recently answered wrong, then least
   recently asked
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy import update

from wordsbot.db.database import Database
from wordsbot.db.models import UserTask
from wordsbot.db.retry import StoreRetry, retrying
from wordsbot.errors import AlreadyAwaiting

from .catalog import compute_content_hash, get_task, select_active_tasks
from .history import TaskHistory, load_session_history, open_assignment_row, row_to_assignment
from .locks import SessionLocks
from .session_filters import lock_state_row, read_filter
from .types import Exhausted, NextTask, Task, utcnow


@dataclass
class SchedulerConfig:
    """Configuration for task selection."""

    cooldown: timedelta = timedelta(hours=12)
    assignment_timeout: timedelta = timedelta(hours=1)
    shuffle_new_tasks: bool = True
    redeliver_outstanding: bool = True  # False: repeated requests raise AlreadyAwaiting


class SessionStatus(str, Enum):
    IDLE = "idle"
    AWAITING = "awaiting"


def make_snapshot(task: Task) -> dict[str, Any]:
    """Copy of a task carried on its assignment, for grading after deletion."""
    return {"filters": dict(task.filters), "task": dict(task.payload)}


def task_from_snapshot(task_id: int, snapshot: dict[str, Any] | None) -> Task | None:
    if not snapshot or "task" not in snapshot:
        return None
    filters = snapshot.get("filters") or {}
    payload = snapshot["task"]
    return Task(
        id=task_id,
        hash=compute_content_hash(filters, payload),
        active=False,
        filters=dict(filters),
        payload=dict(payload),
    )


class Scheduler:
    """
    Assigns tasks to chats one at a time.

    Unanswered assignments expire after ``assignment_timeout``; expiry is
    applied lazily by the next call for the chat (or by sweep_expired).
    """

    def __init__(
        self,
        db: Database,
        config: SchedulerConfig | None = None,
        locks: SessionLocks | None = None,
        retry: StoreRetry | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            db: Backing store
            config: Scheduling configuration (defaults if None)
            locks: Per-chat locks shared with the answer recorder
            retry: Retry policy for transient store errors
            clock: Source of the current time (timezone-aware)
            rng: Random source for ordering never-asked tasks
        """
        self.db = db
        self.config = config or SchedulerConfig()
        self.locks = locks or SessionLocks()
        self.retry = retry or StoreRetry()
        self.clock = clock
        self.rng = rng or random.Random()

    def is_expired(self, assigned_at: datetime, now: datetime) -> bool:
        return now - assigned_at >= self.config.assignment_timeout

    def next(self, session_id: int) -> NextTask | Exhausted:
        """
        Assign the next task to a chat.

        Returns:
            NextTask with the assigned (or re-delivered) task, or Exhausted
            when nothing matches the chat's filter

        Raises:
            AlreadyAwaiting: the chat has an open assignment and re-delivery
                is disabled
        """
        with self.locks.hold(session_id):
            return self._next(session_id)

    @retrying
    def _next(self, session_id: int) -> NextTask | Exhausted:
        now = self.clock()
        expired = None
        with self.db.session_scope() as session:
            lock_state_row(session, session_id)

            row = open_assignment_row(session, session_id)
            if row is not None:
                task = get_task(session, row.task_id) or task_from_snapshot(row.task_id, row.task_snapshot)
                if task is not None and not self.is_expired(row.assigned_at, now):
                    if not self.config.redeliver_outstanding:
                        raise AlreadyAwaiting(session_id, row.task_id)
                    logger.debug("#{} re-delivering task {}", session_id, row.task_id)
                    return NextTask(task=task, assignment=row_to_assignment(row), redelivered=True)

                row.closed_at = now
                expired = row_to_assignment(row)
                logger.debug("#{} assignment {} for task {} expired", session_id, row.id, row.task_id)

            predicate = read_filter(session, session_id)
            candidates = select_active_tasks(session, predicate)
            history = load_session_history(session, session_id)
            ranked = self.rank(candidates, history, now)

            if not ranked:
                logger.debug("#{} no eligible tasks (filter={})", session_id, predicate)
                return Exhausted(session_id=session_id, filter=predicate, expired=expired)

            task = ranked[0]
            assignment = UserTask(
                chat_id=session_id,
                task_id=task.id,
                assigned_at=now,
                task_snapshot=make_snapshot(task),
            )
            session.add(assignment)
            session.flush()

            logger.debug(
                "#{} asking task {} ({} eligible of {} matching)",
                session_id,
                task.id,
                len(ranked),
                len(candidates),
            )
            return NextTask(task=task, assignment=row_to_assignment(assignment), expired=expired)

    def rank(self, tasks: Iterable[Task], history: dict[int, TaskHistory], now: datetime) -> list[Task]:
        """Order candidate tasks for a chat, dropping the ones still cooling down."""
        new: list[Task] = []
        wrong: list[tuple[Task, TaskHistory]] = []
        seen: list[tuple[Task, TaskHistory]] = []

        for task in tasks:
            entry = history.get(task.id)
            if entry is None or not entry.asked:
                new.append(task)
            elif self._cooling_down(entry, now):
                continue
            elif entry.last_correct is False:
                wrong.append((task, entry))
            else:
                seen.append((task, entry))

        if self.config.shuffle_new_tasks:
            self.rng.shuffle(new)
        else:
            new.sort(key=lambda t: t.id)
        wrong.sort(key=lambda pair: (-pair[1].last_wrong_at.timestamp(), pair[0].id))
        seen.sort(key=lambda pair: (pair[1].last_asked_at, pair[0].id))

        return new + [task for task, _ in wrong] + [task for task, _ in seen]

    def _cooling_down(self, entry: TaskHistory, now: datetime) -> bool:
        if entry.last_correct is not True or entry.last_answered_at is None:
            return False
        return now - entry.last_answered_at < self.config.cooldown

    @retrying
    def status(self, session_id: int) -> SessionStatus:
        """Whether the chat currently awaits an answer (expired assignments count as idle)."""
        now = self.clock()
        with self.db.session_scope() as session:
            row = open_assignment_row(session, session_id)
            if row is None or self.is_expired(row.assigned_at, now):
                return SessionStatus.IDLE
            return SessionStatus.AWAITING

    @retrying
    def sweep_expired(self) -> int:
        """Close every assignment past its timeout. Returns how many were closed."""
        now = self.clock()
        with self.db.session_scope() as session:
            closed = session.execute(
                update(UserTask)
                .where(
                    UserTask.closed_at.is_(None),
                    UserTask.assigned_at <= now - self.config.assignment_timeout,
                )
                .values(closed_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
        if closed:
            logger.info("Expired {} abandoned assignments", closed)
        return closed
