"""User identity and activity tracking."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wordsbot.db.database import Database, dialect_insert
from wordsbot.db.models import UserAnswer, UserInfo
from wordsbot.db.retry import StoreRetry, retrying
from wordsbot.errors import NotFound

from .types import AnswerStat, User, utcnow


def row_to_user(row: UserInfo) -> User:
    return User(
        uid=row.uid,
        username=row.username,
        full_name=row.full_name,
        created_at=row.created_at,
        last_active_at=row.last_active_at,
    )


def mark_active(session: Session, uid: int, at: datetime) -> None:
    """Move last_active_at forward inside the caller's transaction."""
    row = session.get(UserInfo, uid)
    if row is None:
        raise NotFound("user", uid)
    if row.last_active_at is None or at > row.last_active_at:
        row.last_active_at = at


class UserDirectory:
    """Chat users and their activity."""

    def __init__(
        self,
        db: Database,
        retry: StoreRetry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.retry = retry or StoreRetry()
        self.clock = clock

    @retrying
    def touch(self, user: User) -> bool:
        """
        Register the user or refresh their activity.

        Returns:
            True if the user was seen for the first time
        """
        now = self.clock()
        with self.db.session_scope() as session:
            is_new = session.get(UserInfo, user.uid) is None
            insert = dialect_insert(session)
            stmt = insert(UserInfo).values(
                uid=user.uid,
                username=user.username,
                full_name=user.full_name,
                created_at=now,
                last_active_at=now,
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["uid"],
                    set_={"last_active_at": stmt.excluded.last_active_at},
                )
            )

        if is_new:
            logger.info("New user: {} (@{})", user.uid, user.username or "unknown")
        return is_new

    @retrying
    def get(self, uid: int) -> User | None:
        with self.db.session_scope() as session:
            row = session.get(UserInfo, uid)
            return row_to_user(row) if row is not None else None

    @retrying
    def mark_active(self, uid: int, at: datetime | None = None) -> None:
        with self.db.session_scope() as session:
            mark_active(session, uid, at or self.clock())

    @retrying
    def answer_stat(self, uid: int, period: timedelta) -> AnswerStat:
        """Answers given and answered correctly during the trailing period."""
        since = self.clock() - period
        with self.db.session_scope() as session:
            count, correct = session.execute(
                select(
                    func.count(UserAnswer.id),
                    func.count(UserAnswer.id).filter(UserAnswer.correct.is_(True)),
                ).where(UserAnswer.uid == uid, UserAnswer.answered_at > since)
            ).one()
        return AnswerStat(count=count, correct=correct)
