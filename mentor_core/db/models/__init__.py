# SQLAlchemy models
from .base import Base
from .history import (
    ActivityEvent,
    Attempt,
    LearnerProgress,
    SkillProgress,
)
from .mentor import (
    CognitiveProfile,
    Mission,
    MistakeLog,
    SelectionEvent,
)

__all__ = [
    # Base
    "Base",
    # Learner history (collaborator-owned)
    "Attempt",
    "ActivityEvent",
    "LearnerProgress",
    "SkillProgress",
    # Intelligence core
    "MistakeLog",
    "CognitiveProfile",
    "Mission",
    "SelectionEvent",
]
