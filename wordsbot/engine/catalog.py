"""
Task catalog.

Content-addressed store of drill exercises. A task's identity is the hash of
its filter tags and payload, so loading the same content twice yields the
same row. Tasks are retired by deactivation; assignments and answers that
reference them stay valid.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from wordsbot.db.database import Database, dialect_insert
from wordsbot.db.models import TaskInfo
from wordsbot.db.retry import StoreRetry, retrying
from wordsbot.errors import NotFound

from .filters import TaskFilter, collect_filter_info, match_task
from .types import FilterInfo, SyncResult, Task, UnknownTask

CatalogEntry = tuple[Mapping[str, str], Mapping[str, Any]]


def compute_content_hash(filter_tags: Mapping[str, str], payload: Mapping[str, Any]) -> int:
    """Stable signed 64-bit hash of a task's tags and payload."""
    canonical = json.dumps(
        {"filters": dict(filter_tags), "task": dict(payload)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def row_to_task(row: TaskInfo) -> Task:
    return Task(
        id=row.id,
        hash=row.hash,
        active=row.active,
        filters=dict(row.filters or {}),
        payload=dict(row.task_data or {}),
    )


def upsert_task(session: Session, filter_tags: Mapping[str, str], payload: Mapping[str, Any]) -> tuple[int, bool]:
    """
    Insert a task unless its content already exists.

    Returns (task_id, created). A concurrent insert of the same content is
    absorbed by ON CONFLICT DO NOTHING followed by a lookup.
    """
    content_hash = compute_content_hash(filter_tags, payload)
    existing = session.scalar(select(TaskInfo.id).where(TaskInfo.hash == content_hash))
    if existing is not None:
        return existing, False

    insert = dialect_insert(session)
    stmt = (
        insert(TaskInfo)
        .values(
            hash=content_hash,
            active=True,
            filters=dict(filter_tags),
            task_data=dict(payload),
        )
        .on_conflict_do_nothing(index_elements=["hash"])
        .returning(TaskInfo.id)
    )
    task_id = session.execute(stmt).scalar_one_or_none()
    if task_id is not None:
        return task_id, True

    return session.scalars(select(TaskInfo.id).where(TaskInfo.hash == content_hash)).one(), False


def select_active_tasks(session: Session, predicate: TaskFilter | None = None, order_by_id: bool = False) -> list[Task]:
    """Active tasks matching the predicate, read inside the caller's transaction."""
    stmt = select(TaskInfo).where(TaskInfo.active.is_(True))
    if order_by_id:
        stmt = stmt.order_by(TaskInfo.id)
    return [
        row_to_task(row)
        for row in session.scalars(stmt)
        if match_task(row.filters or {}, predicate)
    ]


def get_task(session: Session, task_id: int) -> Task | None:
    row = session.get(TaskInfo, task_id)
    return row_to_task(row) if row is not None else None


class TaskCatalog:
    """Store of drill exercises, deduplicated by content hash."""

    def __init__(self, db: Database, retry: StoreRetry | None = None):
        self.db = db
        self.retry = retry or StoreRetry()

    @retrying
    def upsert(self, filter_tags: Mapping[str, str], payload: Mapping[str, Any]) -> int:
        """Add a task, or return the id of the identical task already stored."""
        with self.db.session_scope() as session:
            task_id, created = upsert_task(session, filter_tags, payload)
        if created:
            logger.info("Added task {} with filters {}", task_id, dict(filter_tags))
        return task_id

    @retrying
    def deactivate(self, task_id: int) -> None:
        """Retire a task from selection. History referencing it is untouched."""
        with self.db.session_scope() as session:
            result = session.execute(
                update(TaskInfo).where(TaskInfo.id == task_id).values(active=False)
            )
            if result.rowcount == 0:
                raise NotFound("task", task_id)
        logger.info("Deactivated task {}", task_id)

    @retrying
    def delete(self, task_id: int) -> None:
        """Remove a task row for good. Assignments and answers keep its id."""
        with self.db.session_scope() as session:
            result = session.execute(delete(TaskInfo).where(TaskInfo.id == task_id))
            if result.rowcount == 0:
                raise NotFound("task", task_id)
        logger.info("Deleted task {}", task_id)

    @retrying
    def _active_tasks(self, predicate: TaskFilter | None, order_by_id: bool) -> list[Task]:
        with self.db.session_scope() as session:
            return select_active_tasks(session, predicate, order_by_id)

    def query(self, predicate: TaskFilter | None = None, order_by_id: bool = False) -> Iterator[Task]:
        """
        Active tasks whose tags satisfy the predicate.

        Args:
            predicate: Filter to apply (None matches every active task)
            order_by_id: Return tasks in id order instead of store order

        Yields:
            Task for each match
        """
        yield from self._active_tasks(predicate, order_by_id)

    @retrying
    def get(self, task_id: int) -> Task | None:
        """Look up a task by id, active or not."""
        with self.db.session_scope() as session:
            return get_task(session, task_id)

    def resolve(self, task_id: int) -> Task | UnknownTask:
        return self.get(task_id) or UnknownTask(task_id)

    @retrying
    def sync(self, entries: Iterable[CatalogEntry]) -> SyncResult:
        """
        Make the active catalog equal to the given entries.

        Entries are upserted, previously retired ones re-activated, and every
        other active task is deactivated, all in one transaction.
        """
        entries = list(entries)
        with self.db.session_scope() as session:
            ids = []
            for filter_tags, payload in entries:
                task_id, _ = upsert_task(session, filter_tags, payload)
                ids.append(task_id)

            if ids:
                session.execute(
                    update(TaskInfo)
                    .where(TaskInfo.id.in_(ids), TaskInfo.active.is_(False))
                    .values(active=True)
                )
            stale = update(TaskInfo).where(TaskInfo.active.is_(True))
            if ids:
                stale = stale.where(TaskInfo.id.not_in(ids))
            deactivated = session.execute(stale.values(active=False)).rowcount

        logger.info("Inserted {} tasks", len(set(ids)))
        logger.info("Deactivated {} tasks", deactivated)
        return SyncResult(upserted=len(set(ids)), deactivated=deactivated)

    @retrying
    def collect_filter_info(self) -> list[FilterInfo]:
        """Known tag names with their distinct values across active tasks."""
        with self.db.session_scope() as session:
            tag_sets = session.scalars(
                select(TaskInfo.filters).where(TaskInfo.active.is_(True))
            ).all()
        return collect_filter_info(tag_sets)
