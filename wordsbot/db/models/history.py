"""
Assignment and answer log models.

Neither table references task_info: history has to survive catalog pruning,
so task ids here may point at rows that no longer exist.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, JsonDocument, UTCDateTime


class UserTask(Base):
    """
    A task shown to a chat.

    The row is outstanding while closed_at is NULL. Grading sets answer_id
    and closed_at; expiry sets closed_at only.
    """

    __tablename__ = "user_task"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)  # may be a chat with no user
    task_id: Mapped[int] = mapped_column(BigInteger, nullable=False)  # may be a deleted task
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    answer_id: Mapped[int | None] = mapped_column(BigInteger)
    task_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument)

    __table_args__ = (
        Index("idx_user_task_chat", "chat_id", "closed_at"),
        Index("idx_user_task_answer", "answer_id"),
    )

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def __repr__(self) -> str:
        return f"<UserTask id={self.id} chat={self.chat_id} task={self.task_id} open={self.is_open}>"


class UserAnswer(Base):
    """Append-only graded answer. correct is NULL when it could not be determined."""

    __tablename__ = "user_answer"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_info.uid", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    correct: Mapped[bool | None] = mapped_column(Boolean)
    asked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (Index("idx_user_answer_uid_time", "uid", "answered_at"),)

    def __repr__(self) -> str:
        return f"<UserAnswer id={self.id} uid={self.uid} task={self.task_id} correct={self.correct}>"
