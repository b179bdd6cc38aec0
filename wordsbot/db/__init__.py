from .database import Database
from .retry import StoreRetry, retrying

__all__ = ["Database", "StoreRetry", "retrying"]
