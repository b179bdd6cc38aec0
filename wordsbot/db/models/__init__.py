# SQLAlchemy models
from .base import Base
from .catalog import TaskInfo
from .history import UserAnswer, UserTask
from .users import UserInfo, UserState

__all__ = [
    # Base
    "Base",
    # Catalog
    "TaskInfo",
    # Users
    "UserInfo",
    "UserState",
    # History
    "UserTask",
    "UserAnswer",
]
