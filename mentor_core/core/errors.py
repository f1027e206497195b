"""Exceptions raised by the intelligence core."""
from __future__ import annotations


class MentorCoreError(Exception):
    """Base class for mentor-core errors."""


class ProfileConflictError(MentorCoreError):
    """Concurrent writers kept winning the profile compare-and-swap."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            f"Cognitive profile for {user_id} changed concurrently {attempts} times in a row"
        )
        self.user_id = user_id
        self.attempts = attempts


class MistakeNotFoundError(MentorCoreError):
    """Mistake log id does not exist."""


class MissionNotFoundError(MentorCoreError):
    """Mission id does not exist."""


class FeedbackFormatError(MentorCoreError):
    """Feedback generator replied with a body that is not a JSON object."""
