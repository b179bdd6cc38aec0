"""
Drill service facade.

Wires the engine components to one store and dispatches inbound chat
events. Events for different chats run in parallel on a thread pool; the
engine serializes work for the same chat.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from wordsbot.config import Settings, get_settings
from wordsbot.content import catalog_entries, load_task_groups
from wordsbot.db.database import Database
from wordsbot.db.retry import StoreRetry
from wordsbot.engine import (
    AnswerHistory,
    AnswerRecorder,
    Exhausted,
    GradedAnswer,
    NextTask,
    Scheduler,
    SchedulerConfig,
    SessionFilterStore,
    SessionLocks,
    SyncResult,
    TaskCatalog,
    TaskFilter,
    User,
    UserDirectory,
)
from wordsbot.engine.types import utcnow


@dataclass(frozen=True)
class NextTaskRequested:
    session_id: int
    user: User | None = None


@dataclass(frozen=True)
class FilterChanged:
    session_id: int
    filter_text: str | None
    user: User | None = None


@dataclass(frozen=True)
class AnswerSubmitted:
    session_id: int
    user: User
    answer: str | bool


SessionEvent = NextTaskRequested | FilterChanged | AnswerSubmitted
EventOutcome = NextTask | Exhausted | TaskFilter | GradedAnswer | None


class DrillService:
    """Entry point the chat transport calls into."""

    def __init__(
        self,
        db: Database,
        config: SchedulerConfig | None = None,
        retry: StoreRetry | None = None,
        clock: Callable[[], datetime] = utcnow,
        worker_threads: int = 4,
    ):
        self.db = db
        self.config = config or SchedulerConfig()
        self.retry = retry or StoreRetry()
        self.locks = SessionLocks()

        self.catalog = TaskCatalog(db, retry=self.retry)
        self.filters = SessionFilterStore(db, retry=self.retry)
        self.users = UserDirectory(db, retry=self.retry, clock=clock)
        self.history = AnswerHistory(db, retry=self.retry)
        self.scheduler = Scheduler(db, self.config, locks=self.locks, retry=self.retry, clock=clock)
        self.recorder = AnswerRecorder(db, self.config, locks=self.locks, retry=self.retry, clock=clock)

        self.worker_threads = worker_threads
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DrillService:
        settings = settings or get_settings()
        db = Database(settings.database_url, echo=settings.log_level == "DEBUG")
        retry = StoreRetry(**settings.get_retry_config())
        return cls(
            db,
            config=settings.get_scheduler_config(),
            retry=retry,
            worker_threads=settings.worker_threads,
        )

    # ========================================
    # Operations
    # ========================================

    def next_task(self, session_id: int) -> NextTask | Exhausted:
        return self.scheduler.next(session_id)

    def set_filter(self, session_id: int, filter_text: str | None) -> TaskFilter | None:
        return self.filters.set_filter(session_id, filter_text)

    def answer(self, session_id: int, user_id: int, answer: str | bool) -> GradedAnswer:
        return self.recorder.grade(session_id, user_id, answer)

    def load_tasks(self, directory: Path | str) -> SyncResult:
        """Replace the active catalog with the task groups found in a directory."""
        groups = load_task_groups(directory)
        return self.catalog.sync(catalog_entries(groups))

    # ========================================
    # Event dispatch
    # ========================================

    def handle(self, event: SessionEvent) -> EventOutcome:
        """Process one inbound event synchronously."""
        user = getattr(event, "user", None)
        if user is not None:
            self.users.touch(user)

        if isinstance(event, NextTaskRequested):
            return self.next_task(event.session_id)
        if isinstance(event, FilterChanged):
            return self.set_filter(event.session_id, event.filter_text)
        if isinstance(event, AnswerSubmitted):
            return self.answer(event.session_id, event.user.uid, event.answer)
        raise TypeError(f"Unsupported event: {event!r}")

    def submit(self, event: SessionEvent) -> Future:
        """Process an event on the worker pool."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.worker_threads, thread_name_prefix="drill"
            )
        future = self._executor.submit(self.handle, event)
        future.add_done_callback(_log_failure(event))
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        self.db.dispose()

    def __enter__(self) -> DrillService:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


def _log_failure(event: SessionEvent) -> Callable[[Future], None]:
    def callback(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("#{} {} failed: {}", event.session_id, type(event).__name__, error)

    return callback
