"""
Execution result models.

An ExecutionResult is produced by the external sandboxed execution
service for every submitted attempt. It is ephemeral: the core reads it,
classifies it and stores only derived data.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mentor_core.core.taxonomy import AttemptStatus


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass
class TestOutcome:
    """Result of a single test case."""

    __test__ = False  # not a pytest test class

    index: int
    input: str
    expected: str
    actual: str | None
    passed: bool
    error: str | None = None
    hidden: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], position: int = 0) -> TestOutcome:
        """
        Parse a test outcome, accepting camelCase keys from the execution service.

        Scalar fields are coerced to text; a non-integer index falls back
        to ``position`` in the test list.
        """
        index = data.get("index", data.get("testIndex"))
        if not isinstance(index, int) or isinstance(index, bool):
            index = position
        return cls(
            index=index,
            input=_text(data.get("input")),
            expected=_text(data.get("expected")),
            actual=_optional_text(data.get("actual")),
            passed=bool(data.get("passed", False)),
            error=_optional_text(data.get("error")),
            hidden=bool(data.get("hidden", data.get("isHidden", False))),
        )


@dataclass
class ExecutionResult:
    """
    Outcome of running one submission against its test suite.

    Attributes:
        code: Submitted source text
        compile_error: Compiler diagnostic text, if compilation failed
        runtime_error: Runtime exception text, if the program crashed
        stderr: Raw standard error, if any
        tests: Test outcomes (None when the payload was malformed)
        duration_ms: Wall-clock duration of the run
        status: Terminal status (kept as raw string when unknown)
    """

    code: str = ""
    compile_error: str | None = None
    runtime_error: str | None = None
    stderr: str | None = None
    tests: list[TestOutcome] | None = field(default_factory=list)
    duration_ms: int | None = None
    status: AttemptStatus | str = AttemptStatus.FAIL

    @property
    def parsed_status(self) -> AttemptStatus | None:
        return AttemptStatus.parse(self.status)

    @property
    def passed_count(self) -> int:
        return sum(1 for t in self.tests or [] if t.passed)

    @property
    def failed_tests(self) -> list[TestOutcome]:
        return [t for t in self.tests or [] if not t.passed]

    @property
    def pass_ratio(self) -> float | None:
        """Share of passing tests, or None when there are no tests."""
        if not self.tests:
            return None
        return self.passed_count / len(self.tests)

    @property
    def error_text(self) -> str:
        """Compiler, runtime and stderr text joined for pattern matching."""
        parts = [self.compile_error, self.runtime_error, self.stderr]
        return "\n".join(p for p in parts if p)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionResult:
        """
        Leniently parse an execution service payload.

        Shape problems never raise: a missing or non-list test payload is
        kept as ``tests=None`` so the classifier can report it as OTHER.
        """
        raw_tests = data.get("tests", data.get("testResults"))
        tests: list[TestOutcome] | None
        if isinstance(raw_tests, list):
            tests = []
            for position, item in enumerate(raw_tests):
                if isinstance(item, dict):
                    tests.append(TestOutcome.from_dict(item, position))
                else:
                    logger.warning(f"Skipping malformed test outcome: {item!r}")
        else:
            tests = None

        duration = data.get("duration_ms", data.get("executionMs"))
        status = data.get("status", AttemptStatus.FAIL.value)

        return cls(
            code=_text(data.get("code")),
            compile_error=_optional_text(data.get("compile_error", data.get("compileError"))),
            runtime_error=_optional_text(data.get("runtime_error", data.get("runtimeError"))),
            stderr=_optional_text(data.get("stderr")),
            tests=tests,
            duration_ms=int(duration) if _is_number(duration) else None,
            status=AttemptStatus.parse(status) or str(status),
        )


@dataclass
class AttemptOutcome:
    """Single attempt outcome consumed by the incremental profile update."""

    attempt_id: str
    user_id: str
    question_id: str
    topic_id: str | None
    passed: bool
    difficulty: int = 1
    duration_ms: int | None = None
