"""Classification events and feedback payloads exchanged with the feedback generator."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from mentor_core.core.clock import utcnow
from mentor_core.core.taxonomy import ErrorCategory
from mentor_core.diagnosis.classifier import Classification


class ClassificationEvent(BaseModel):
    """Published after an attempt has been classified."""

    user_id: str
    attempt_id: str
    question_id: str
    mistake_log_id: str | None = Field(None, description="Mistake log written for this attempt")
    category: ErrorCategory
    severity: int = Field(..., ge=1, le=5)
    key_signals: list[str] = Field(default_factory=list)
    suggested_focus: str = ""
    tests_passed: int = 0
    tests_total: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_classification(
        cls,
        classification: Classification,
        user_id: str,
        attempt_id: str,
        question_id: str,
        mistake_log_id: str | None = None,
    ) -> ClassificationEvent:
        return cls(
            user_id=user_id,
            attempt_id=attempt_id,
            question_id=question_id,
            mistake_log_id=mistake_log_id,
            category=classification.category,
            severity=classification.severity,
            key_signals=list(classification.key_signals),
            suggested_focus=classification.suggested_focus,
            tests_passed=classification.test_analysis.passed,
            tests_total=classification.test_analysis.total,
        )


class MentorFeedback(BaseModel):
    """Pedagogical feedback for one classified attempt."""

    error_category: ErrorCategory
    short_diagnosis: str
    reasoning_hint: str
    guiding_questions: list[str] = Field(default_factory=list)
    progressive_hints: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    confidence: int = Field(50, ge=0, le=100)
    source: Literal["generator", "fallback"] = "generator"
