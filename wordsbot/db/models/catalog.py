"""
Task catalog model.

One row per unique exercise. Rows are addressed by a content hash so that
reloading the same content never creates duplicates; retired tasks are
deactivated rather than deleted.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, JsonDocument


class TaskInfo(Base):
    """A drill exercise with its filter tags and payload."""

    __tablename__ = "task_info"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    hash: Mapped[int] = mapped_column(BigInteger, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    filters: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    task_data: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)

    __table_args__ = (Index("task_hash", "hash", unique=True),)

    def __repr__(self) -> str:
        return f"<TaskInfo id={self.id} hash={self.hash} active={self.active}>"
