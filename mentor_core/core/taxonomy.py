"""
Closed taxonomies shared by every component.

Each taxonomy is an explicit str enum so values round-trip through the
database and JSON payloads unchanged.
"""
from __future__ import annotations

from enum import Enum


class AttemptStatus(str, Enum):
    """Terminal status reported by the code-execution service."""

    PASS = "PASS"
    FAIL = "FAIL"
    COMPILE_ERROR = "COMPILE_ERROR"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    TIMEOUT = "TIMEOUT"
    MEMORY_EXCEEDED = "MEMORY_EXCEEDED"

    @classmethod
    def parse(cls, value: object) -> AttemptStatus | None:
        """Lenient conversion; returns None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    @property
    def is_pass(self) -> bool:
        return self is AttemptStatus.PASS


class ErrorCategory(str, Enum):
    """
    Diagnostic category produced by the classifier.

    Describes the mechanics of the failure, not the learner behaviour
    (see MistakeType for that).
    """

    SYNTAX = "SYNTAX"
    LOGIC = "LOGIC"
    EDGE_CASE = "EDGE_CASE"
    TIMEOUT = "TIMEOUT"
    OUTPUT_FORMAT = "OUTPUT_FORMAT"
    NULL_HANDLING = "NULL_HANDLING"
    OFF_BY_ONE = "OFF_BY_ONE"
    TYPE_ERROR = "TYPE_ERROR"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        """Human-readable name."""
        return {
            ErrorCategory.SYNTAX: "Syntax Error",
            ErrorCategory.LOGIC: "Logic Error",
            ErrorCategory.EDGE_CASE: "Edge Case Not Handled",
            ErrorCategory.TIMEOUT: "Time Limit Exceeded",
            ErrorCategory.OUTPUT_FORMAT: "Output Format Issue",
            ErrorCategory.NULL_HANDLING: "Null/Empty Handling Issue",
            ErrorCategory.OFF_BY_ONE: "Off-by-One Error",
            ErrorCategory.TYPE_ERROR: "Type Error",
            ErrorCategory.RUNTIME_ERROR: "Runtime Error",
            ErrorCategory.OTHER: "Unknown Error",
        }[self]


class MistakeType(str, Enum):
    """Behavioural mistake taxonomy stored in the mistake log."""

    CARELESS = "CARELESS"  # near miss, small slip
    MISUNDERSTANDING = "MISUNDERSTANDING"  # most tests fail
    SYNTAX = "SYNTAX"
    TYPE_ERROR = "TYPE_ERROR"
    TIMEOUT = "TIMEOUT"
    MEMORY = "MEMORY"
    EDGE_CASE = "EDGE_CASE"
    LOGIC = "LOGIC"
    NULL_HANDLING = "NULL_HANDLING"
    OUTPUT_FORMAT = "OUTPUT_FORMAT"  # right answer, wrong presentation
    PARTIAL_SOLUTION = "PARTIAL_SOLUTION"  # visible tests pass, hidden fail
    HARDCODING = "HARDCODING"  # literal answers instead of an algorithm
    INCOMPLETE = "INCOMPLETE"  # nothing meaningful submitted

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class SkillArea(str, Enum):
    """Programming skill areas detected from submitted source."""

    LOOPS = "loops"
    ARRAYS = "arrays"
    STRINGS = "strings"
    CONDITIONALS = "conditionals"
    METHODS = "methods"
    CLASSES = "classes"
    RECURSION = "recursion"
    IO = "io"


class MissionType(str, Enum):
    """Personalised daily mission types."""

    BURNOUT_PREVENTION = "BURNOUT_PREVENTION"
    STREAK_PROTECTION = "STREAK_PROTECTION"
    MISTAKE_RECOVERY = "MISTAKE_RECOVERY"
    WEAKNESS_TRAINING = "WEAKNESS_TRAINING"
    CONFIDENCE_BOOST = "CONFIDENCE_BOOST"
    MOMENTUM_PUSH = "MOMENTUM_PUSH"
    SKILL_UNLOCK = "SKILL_UNLOCK"
    MASTERY_CHALLENGE = "MASTERY_CHALLENGE"
    REVIEW_SESSION = "REVIEW_SESSION"
    SPEED_CHALLENGE = "SPEED_CHALLENGE"
    ACCURACY_FOCUS = "ACCURACY_FOCUS"


class TrendDirection(str, Enum):
    """Week-over-week mistake trend."""

    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"
