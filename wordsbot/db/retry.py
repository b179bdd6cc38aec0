"""
Retry of store operations on transient connectivity failures.

A retried operation re-runs its whole transaction, so callers wrap the
function that opens the session scope, never code inside it.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from wordsbot.errors import StoreUnavailable

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5


def is_transient(exc: BaseException) -> bool:
    """Connectivity problems worth retrying; constraint violations are not."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class StoreRetry:
    """Runs a callable, retrying transient store errors with exponential backoff."""

    def __init__(
        self,
        attempts: int = DEFAULT_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def call(self, operation: str, fn: Callable[..., T], *args, **kwargs) -> T:
        last_error: BaseException | None = None
        for attempt in range(self.attempts):
            try:
                return fn(*args, **kwargs)
            except DBAPIError as e:
                if not is_transient(e):
                    raise
                last_error = e
                if attempt < self.attempts - 1:
                    wait_time = self.backoff_seconds * 2**attempt
                    logger.warning(
                        "Store error in {} on attempt {}/{}: {}. Retrying in {}s...",
                        operation,
                        attempt + 1,
                        self.attempts,
                        e.orig if e.orig is not None else e,
                        wait_time,
                    )
                    self._sleep(wait_time)

        logger.error("Store unavailable: {} failed after {} attempts", operation, self.attempts)
        raise StoreUnavailable(operation, self.attempts) from last_error

    def __call__(self, fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            return self.call(fn.__qualname__, fn, *args, **kwargs)

        return wrapper


def retrying(method: Callable[..., T]) -> Callable[..., T]:
    """Method decorator using the ``retry`` attribute of the owning component."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        return self.retry.call(method.__qualname__, method, self, *args, **kwargs)

    return wrapper
