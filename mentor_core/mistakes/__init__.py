"""
Mistakes Module - Behavioral mistake logging and pattern analysis.

Components:
- analyzer: behavioral mistake type + skill area detection
- store: MistakeStore (record, recurrence, patterns, resolution)
"""

from mentor_core.mistakes.analyzer import MistakeAnalysis, analyze_mistake, detect_skill_area
from mentor_core.mistakes.store import MistakePatterns, MistakeStore, MistakeTrend, compute_trend

__all__ = [
    "MistakeAnalysis",
    "analyze_mistake",
    "detect_skill_area",
    "MistakePatterns",
    "MistakeStore",
    "MistakeTrend",
    "compute_trend",
]
