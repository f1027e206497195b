"""
Profile Module - Longitudinal cognitive profiles.

Components:
- metrics: pure derivation of every profile field from history
- engine: CognitiveProfileEngine (lazy creation, recompute, incremental updates)
- locks: per-learner lock registry shared by both update paths
"""

from mentor_core.profile.engine import CognitiveProfileEngine, ema_step
from mentor_core.profile.locks import ProfileLocks, profile_locks
from mentor_core.profile.metrics import ProfileHistory, ProfileMetrics, compute_profile

__all__ = [
    "CognitiveProfileEngine",
    "ema_step",
    "ProfileLocks",
    "profile_locks",
    "ProfileHistory",
    "ProfileMetrics",
    "compute_profile",
]
