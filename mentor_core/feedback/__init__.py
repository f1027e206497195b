"""
Feedback Module - Decoupled hand-off to the tutoring feedback generator.

Components:
- events: ClassificationEvent, MentorFeedback (pydantic)
- client: FeedbackClient seam (Null / HTTP) and MentorFeedbackGenerator
- fallback: deterministic per-category feedback
- queue: FeedbackQueue (non-blocking publish) and FeedbackWorker
"""

from mentor_core.feedback.client import (
    FeedbackClient,
    HttpFeedbackClient,
    MentorFeedbackGenerator,
    NullFeedbackClient,
    build_feedback_client,
)
from mentor_core.feedback.events import ClassificationEvent, MentorFeedback
from mentor_core.feedback.fallback import fallback_feedback
from mentor_core.feedback.queue import FeedbackQueue, FeedbackWorker

__all__ = [
    "ClassificationEvent",
    "MentorFeedback",
    "FeedbackClient",
    "HttpFeedbackClient",
    "MentorFeedbackGenerator",
    "NullFeedbackClient",
    "build_feedback_client",
    "fallback_feedback",
    "FeedbackQueue",
    "FeedbackWorker",
]
