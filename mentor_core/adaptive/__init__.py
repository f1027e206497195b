"""
Adaptive Module - Per-exercise next-item selection.

Components:
- selector: AdaptiveSelector, ExerciseCandidate, score_candidate()
"""

from mentor_core.adaptive.selector import (
    AdaptiveSelector,
    ExerciseCandidate,
    ScoredCandidate,
    Selection,
    TopicState,
    score_candidate,
)

__all__ = [
    "AdaptiveSelector",
    "ExerciseCandidate",
    "ScoredCandidate",
    "Selection",
    "TopicState",
    "score_candidate",
]
