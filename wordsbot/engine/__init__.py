"""
Drill engine: task catalog, per-chat scheduling and answer grading.

Components:
- TaskCatalog: content-addressed exercise store
- SessionFilterStore: filter selected per chat
- UserDirectory: users and activity
- AnswerHistory: assignment/answer log with soft task references
- Scheduler: one-at-a-time task assignment
- AnswerRecorder: grading of outstanding assignments
"""

from .catalog import TaskCatalog, compute_content_hash
from .filters import TaskFilter
from .history import AnswerHistory
from .locks import SessionLocks
from .recorder import AnswerRecorder, check_answer
from .scheduler import Scheduler, SchedulerConfig, SessionStatus
from .session_filters import SessionFilterStore
from .types import (
    AnswerRecord,
    AnswerStat,
    Assignment,
    AssignmentRecord,
    Exhausted,
    FilterInfo,
    GradedAnswer,
    NextTask,
    SyncResult,
    Task,
    UnknownTask,
    User,
)
from .users import UserDirectory

__all__ = [
    # Components
    "TaskCatalog",
    "SessionFilterStore",
    "UserDirectory",
    "AnswerHistory",
    "Scheduler",
    "SchedulerConfig",
    "SessionStatus",
    "AnswerRecorder",
    "SessionLocks",
    # Helpers
    "TaskFilter",
    "compute_content_hash",
    "check_answer",
    # Values
    "Task",
    "UnknownTask",
    "User",
    "Assignment",
    "GradedAnswer",
    "NextTask",
    "Exhausted",
    "FilterInfo",
    "AnswerStat",
    "SyncResult",
    "AssignmentRecord",
    "AnswerRecord",
]
