"""
Core Module - Shared domain models and taxonomies.

Components:
- taxonomy: closed enums (ErrorCategory, MistakeType, MissionType, ...)
- execution: ExecutionResult / TestOutcome input models
- errors: exception hierarchy
- clock: naive-UTC time helpers

All other packages import shared concepts from here rather than
redefining them.
"""

from mentor_core.core.errors import (
    MentorCoreError,
    MissionNotFoundError,
    MistakeNotFoundError,
    ProfileConflictError,
)
from mentor_core.core.execution import AttemptOutcome, ExecutionResult, TestOutcome
from mentor_core.core.taxonomy import (
    AttemptStatus,
    ErrorCategory,
    MissionType,
    MistakeType,
    SkillArea,
    TrendDirection,
)

__all__ = [
    # Taxonomies
    "AttemptStatus",
    "ErrorCategory",
    "MistakeType",
    "MissionType",
    "SkillArea",
    "TrendDirection",
    # Inputs
    "ExecutionResult",
    "TestOutcome",
    "AttemptOutcome",
    # Errors
    "MentorCoreError",
    "ProfileConflictError",
    "MistakeNotFoundError",
    "MissionNotFoundError",
]
