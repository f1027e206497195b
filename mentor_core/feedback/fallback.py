"""
Deterministic fallback feedback.

Used whenever no external generator is configured or it fails, so every
classified attempt still gets complete feedback.
"""
from __future__ import annotations

from mentor_core.core.taxonomy import ErrorCategory
from mentor_core.feedback.events import ClassificationEvent, MentorFeedback

CATEGORY_ADVICE: dict[ErrorCategory, tuple[str, str]] = {
    ErrorCategory.SYNTAX: (
        "Your code has a syntax error that prevents it from compiling.",
        "Read the error message carefully - it usually points to the exact line and type of error.",
    ),
    ErrorCategory.LOGIC: (
        "Your code compiles but produces incorrect results.",
        "Try tracing through your algorithm with a simple example on paper.",
    ),
    ErrorCategory.EDGE_CASE: (
        "Your code fails on certain edge cases or boundary conditions.",
        "Consider what happens with empty input, single elements, or extreme values.",
    ),
    ErrorCategory.TIMEOUT: (
        "Your code takes too long to execute, possibly due to an infinite loop.",
        "Check that your loops have correct termination conditions.",
    ),
    ErrorCategory.OUTPUT_FORMAT: (
        "Your logic may be correct but the output format doesn't match exactly.",
        "Check spacing, newlines, and exact formatting requirements.",
    ),
    ErrorCategory.NULL_HANDLING: (
        "Your code crashes when encountering null or empty values.",
        "Add checks for null or empty input before processing.",
    ),
    ErrorCategory.OFF_BY_ONE: (
        "Your answer is very close but off by one, likely a loop boundary issue.",
        "Check your loop start and end conditions carefully.",
    ),
    ErrorCategory.TYPE_ERROR: (
        "There's a type mismatch or conversion issue in your code.",
        "Review the data types you're using and ensure they're compatible.",
    ),
    ErrorCategory.RUNTIME_ERROR: (
        "Your code crashes during execution with a runtime exception.",
        "Identify what input causes the crash and add appropriate checks.",
    ),
    ErrorCategory.OTHER: (
        "There's an issue with your submission that needs investigation.",
        "Review the test output and compare with expected results.",
    ),
}

GUIDING_QUESTIONS = [
    "What is the expected output for the simplest possible input?",
    "Can you trace through your code line by line with a specific example?",
]

NEXT_ACTIONS = [
    "Add print statements to trace variable values",
    "Test with the simplest possible input first",
    "Compare your output character-by-character with expected output",
]


def fallback_feedback(event: ClassificationEvent) -> MentorFeedback:
    diagnosis, hint = CATEGORY_ADVICE[event.category]

    if event.tests_passed > 0:
        progress_hint = (
            f"You've passed {event.tests_passed} tests - you're close! "
            "Check what's different about the failing cases."
        )
    else:
        progress_hint = "Start by making sure your code handles the basic case correctly."

    return MentorFeedback(
        error_category=event.category,
        short_diagnosis=diagnosis,
        reasoning_hint=hint,
        guiding_questions=list(GUIDING_QUESTIONS),
        progressive_hints=[
            event.suggested_focus,
            f"Focus on: {event.key_signals[0]}" if event.key_signals else "Review your logic step by step",
            progress_hint,
        ],
        next_actions=list(NEXT_ACTIONS),
        confidence=50,
        source="fallback",
    )
