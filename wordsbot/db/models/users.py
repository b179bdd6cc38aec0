"""User identity and per-chat state models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime


class UserInfo(Base):
    """A chat user; last_active_at moves forward on every graded answer."""

    __tablename__ = "user_info"

    uid: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    username: Mapped[str | None] = mapped_column(Text)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<UserInfo uid={self.uid} username={self.username}>"


class UserState(Base):
    """Per-chat mutable state. Only the selected filter for now."""

    __tablename__ = "user_state"

    chat_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    filter: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<UserState chat_id={self.chat_id} filter={self.filter!r}>"
