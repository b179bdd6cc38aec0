"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wordsbot.db.database import Database  # noqa: E402
from wordsbot.db.retry import StoreRetry  # noqa: E402
from wordsbot.engine import SchedulerConfig  # noqa: E402
from wordsbot.service import DrillService  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require PostgreSQL)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Controllable timezone-aware clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 7, 12, 0, tzinfo=UTC))


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite store with all tables created."""
    database = Database(f"sqlite:///{tmp_path / 'words.db'}")
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def retry():
    return StoreRetry(attempts=2, backoff_seconds=0)


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(
        cooldown=timedelta(hours=12),
        assignment_timeout=timedelta(hours=1),
        shuffle_new_tasks=False,
    )


@pytest.fixture
def service(db, scheduler_config, retry, clock):
    drill = DrillService(db, config=scheduler_config, retry=retry, clock=clock, worker_threads=4)
    yield drill
    drill.shutdown()


@pytest.fixture
def learner():
    from wordsbot.engine import User

    return User(uid=42, username="ana", full_name="Ana Marić")


@pytest.fixture
def sample_task():
    """Provide a sample drill task (tags, payload)."""
    return (
        {"topic": "colors"},
        {"q": "red?", "a": "rot"},
    )
