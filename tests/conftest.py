"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mentor_core.core.execution import ExecutionResult, TestOutcome  # noqa: E402
from mentor_core.core.taxonomy import AttemptStatus  # noqa: E402
from mentor_core.db.models import Attempt, Base  # noqa: E402

NOW = datetime(2025, 3, 10, 12, 0, 0)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time (naive UTC)."""
    return NOW


@pytest.fixture
def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Fresh session per test; the owner (the test) never commits."""
    session = Session(engine, autoflush=False, expire_on_commit=False)
    yield session
    session.rollback()
    session.close()


def make_test(
    index=0,
    expected="1",
    actual="1",
    passed=None,
    hidden=False,
    error=None,
    input="",
):
    """Build one test outcome; ``passed`` defaults to expected == actual."""
    if passed is None:
        passed = actual is not None and expected == actual
    return TestOutcome(
        index=index,
        input=input,
        expected=expected,
        actual=actual,
        passed=passed,
        error=error,
        hidden=hidden,
    )


def make_result(
    status=AttemptStatus.FAIL,
    tests=None,
    code="int solve(int[] a) { if (a.length == 0) return 0; return a[0]; }",
    compile_error=None,
    runtime_error=None,
    stderr=None,
    duration_ms=120,
):
    """Build an execution result with sensible defaults."""
    return ExecutionResult(
        code=code,
        compile_error=compile_error,
        runtime_error=runtime_error,
        stderr=stderr,
        tests=[] if tests is None else tests,
        duration_ms=duration_ms,
        status=status,
    )


def add_attempt(
    session,
    user_id,
    passed,
    created_at,
    topic_id=None,
    difficulty=1,
    execution_ms=60_000,
    question_id="q-1",
    status=None,
):
    """Insert an attempt row and return it."""
    attempt = Attempt(
        user_id=user_id,
        question_id=question_id,
        topic_id=topic_id,
        difficulty=difficulty,
        status=status or ("PASS" if passed else "FAIL"),
        execution_ms=execution_ms,
        created_at=created_at,
    )
    session.add(attempt)
    session.flush()
    return attempt


@pytest.fixture
def result_factory():
    """Expose the execution result builders to tests."""
    return make_result


@pytest.fixture
def outcome_factory():
    return make_test


@pytest.fixture
def attempt_factory(session):
    """Insert attempts into the test session."""

    def _add(user_id, passed, created_at, **kwargs):
        return add_attempt(session, user_id, passed, created_at, **kwargs)

    return _add
