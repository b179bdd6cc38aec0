"""Per-chat filter selection, last write wins."""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from wordsbot.db.database import Database, dialect_insert
from wordsbot.db.models import UserState
from wordsbot.db.retry import StoreRetry, retrying

from .filters import TaskFilter


def read_filter(session: Session, session_id: int) -> TaskFilter | None:
    text = session.scalar(select(UserState.filter).where(UserState.chat_id == session_id))
    return TaskFilter.parse(text)


def ensure_state_row(session: Session, session_id: int) -> None:
    """Create the chat's state row if missing, leaving an existing filter alone."""
    insert = dialect_insert(session)
    session.execute(
        insert(UserState)
        .values(chat_id=session_id, filter=None)
        .on_conflict_do_nothing(index_elements=["chat_id"])
    )


def lock_state_row(session: Session, session_id: int) -> None:
    """Take the row lock that serializes scheduling for a chat (no-op on SQLite)."""
    ensure_state_row(session, session_id)
    session.execute(
        select(UserState.chat_id).where(UserState.chat_id == session_id).with_for_update()
    )


class SessionFilterStore:
    """Keeps the filter each chat has selected."""

    def __init__(self, db: Database, retry: StoreRetry | None = None):
        self.db = db
        self.retry = retry or StoreRetry()

    @retrying
    def set_filter(self, session_id: int, predicate: TaskFilter | str | None) -> TaskFilter | None:
        """
        Replace the chat's filter.

        Text is parsed first; "-" or blank text clears the filter. Returns the
        filter now in effect.
        """
        if isinstance(predicate, str):
            predicate = TaskFilter.parse(predicate)
        text = predicate.to_text() if predicate is not None else None

        with self.db.session_scope() as session:
            insert = dialect_insert(session)
            stmt = insert(UserState).values(chat_id=session_id, filter=text)
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["chat_id"], set_={"filter": stmt.excluded.filter}
                )
            )

        logger.debug("#{} filter set to {!r}", session_id, text)
        return predicate

    def clear_filter(self, session_id: int) -> None:
        self.set_filter(session_id, None)

    @retrying
    def get_filter(self, session_id: int) -> TaskFilter | None:
        """The chat's filter, or None (match everything) when nothing was chosen."""
        with self.db.session_scope() as session:
            return read_filter(session, session_id)
