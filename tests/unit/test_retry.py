"""Tests for store retry on transient failures."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from wordsbot.db.retry import StoreRetry, is_transient
from wordsbot.engine import TaskCatalog
from wordsbot.errors import StoreUnavailable


def operational_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


class Flaky:
    def __init__(self, failures, error_factory=operational_error):
        self.failures = failures
        self.calls = 0
        self.error_factory = error_factory

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return "ok"


def test_is_transient():
    assert is_transient(operational_error())
    assert is_transient(InterfaceError("SELECT 1", {}, Exception("closed")))
    assert is_transient(DBAPIError("SELECT 1", {}, Exception("reset"), connection_invalidated=True))
    assert not is_transient(IntegrityError("INSERT", {}, Exception("duplicate key")))
    assert not is_transient(ValueError("nope"))


def test_recovers_with_exponential_backoff():
    sleeps = []
    retry = StoreRetry(attempts=3, backoff_seconds=0.5, sleep=sleeps.append)
    flaky = Flaky(failures=2)

    assert retry.call("load", flaky) == "ok"
    assert flaky.calls == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_attempts():
    sleeps = []
    retry = StoreRetry(attempts=3, backoff_seconds=0.5, sleep=sleeps.append)
    flaky = Flaky(failures=10)

    with pytest.raises(StoreUnavailable) as exc_info:
        retry.call("load", flaky)

    assert flaky.calls == 3
    assert sleeps == [0.5, 1.0]
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_constraint_violation_is_not_retried():
    retry = StoreRetry(attempts=3, sleep=lambda s: None)
    flaky = Flaky(failures=1, error_factory=lambda: IntegrityError("INSERT", {}, Exception("dup")))

    with pytest.raises(IntegrityError):
        retry.call("insert", flaky)
    assert flaky.calls == 1


def test_other_errors_pass_through():
    def broken():
        raise KeyError("x")

    with pytest.raises(KeyError):
        StoreRetry(sleep=lambda s: None).call("broken", broken)


def test_decorator():
    retry = StoreRetry(attempts=2, backoff_seconds=0)
    flaky = Flaky(failures=1)

    @retry
    def run():
        return flaky()

    assert run() == "ok"
    assert flaky.calls == 2


def test_component_surfaces_store_unavailable():
    db = MagicMock()
    db.session_scope.side_effect = operational_error()
    catalog = TaskCatalog(db, retry=StoreRetry(attempts=2, backoff_seconds=0))

    with pytest.raises(StoreUnavailable) as exc_info:
        catalog.upsert({"topic": "colors"}, {"q": "red?"})

    assert db.session_scope.call_count == 2
    assert "TaskCatalog.upsert" in exc_info.value.operation
