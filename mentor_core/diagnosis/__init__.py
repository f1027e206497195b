"""
Diagnosis Module - Deterministic failure classification.

Components:
- classifier: Classifier, Classification, classify(), summarize()
- patterns: compiler / runtime / static-risk pattern tables
"""

from mentor_core.diagnosis.classifier import (
    Classification,
    Classifier,
    TestAnalysis,
    analyze_test_diffs,
    character_similarity,
    classify,
    summarize,
)

__all__ = [
    "Classification",
    "Classifier",
    "TestAnalysis",
    "analyze_test_diffs",
    "character_similarity",
    "classify",
    "summarize",
]
