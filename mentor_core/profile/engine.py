"""
Cognitive Profile Engine.

Maintains one CognitiveProfile per learner through two update paths:

- Full recompute: reads the learner's recent history, derives every field
  from scratch (see metrics.compute_profile) and replaces the stored
  profile. Authoritative; incremental deltas applied before it are
  discarded.
- Incremental update: O(1) adjustment after a single attempt, touching
  only the profile row and the attempted topic's moving averages.

Both paths hold the learner's in-process lock and persist through a
compare-and-swap on the ``version`` column, retrying on conflict.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import get_settings
from mentor_core.core.clock import utcnow
from mentor_core.core.errors import MentorCoreError, ProfileConflictError
from mentor_core.core.execution import AttemptOutcome
from mentor_core.core.scoring import clamp
from mentor_core.core.taxonomy import MistakeType
from mentor_core.db.database import use_session
from mentor_core.db.models import (
    ActivityEvent,
    Attempt,
    CognitiveProfile,
    LearnerProgress,
    Mission,
    MistakeLog,
)
from mentor_core.profile.locks import ProfileLocks, profile_locks
from mentor_core.profile.metrics import (
    ActivitySnapshot,
    AttemptSnapshot,
    MissionSnapshot,
    MistakeSnapshot,
    ProfileHistory,
    ProfileMetrics,
    ProgressSnapshot,
    compute_profile,
)

DEFAULT_TOPIC_SCORE = 50.0

# Per-attempt adjustments of the incremental path
ADJUSTMENTS = {
    "confidence_pass": 2,
    "confidence_fail": -5,
    "momentum_pass": 3,
    "momentum_fail": -2,
    "confidence_severe_mistake": -3,
}
SEVERE_MISTAKE = 3


def ema_step(previous: float, target: float, alpha: float) -> float:
    """One exponential moving average step towards ``target``, clamped to [0, 100]."""
    return round(clamp(previous * (1 - alpha) + target * alpha), 2)


class CognitiveProfileEngine:
    """
    Reads and writes cognitive profiles.

    Usage:
        engine = CognitiveProfileEngine()
        engine.apply_attempt(outcome)        # hot path, after every attempt
        metrics = engine.recompute(user_id)  # periodic batch job
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        locks: Optional[ProfileLocks] = None,
    ):
        self._session = session
        self._locks = locks or profile_locks
        config = get_settings().get_profile_config()
        self.alpha: float = config["ema_alpha"]
        self.attempt_limit: int = config["attempt_limit"]
        self.history_days: int = config["history_days"]
        self.max_retries: int = config["max_retries"]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_or_create(self, user_id: str) -> CognitiveProfile:
        """Get the learner's profile, creating a default one on first access."""
        with self._get_session() as session:
            return self._get_or_create(session, user_id)

    def get(self, user_id: str) -> CognitiveProfile | None:
        with self._get_session() as session:
            return self._fetch(session, user_id)

    def _fetch(self, session: Session, user_id: str) -> CognitiveProfile | None:
        stmt = (
            select(CognitiveProfile)
            .where(CognitiveProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalar_one_or_none()

    def _get_or_create(self, session: Session, user_id: str) -> CognitiveProfile:
        profile = self._fetch(session, user_id)
        if profile is None:
            profile = CognitiveProfile(
                user_id=user_id,
                avg_solve_time_by_difficulty={},
                topic_weakness_map={},
                topic_strength_map={},
                mistake_type_frequency={},
                version=0,
            )
            session.add(profile)
            session.flush()
            logger.info(f"Created default cognitive profile for {user_id}")
        return profile

    def load_history(self, session: Session, user_id: str, now: datetime) -> ProfileHistory:
        """Read everything a full recompute needs, newest first."""
        since = now - timedelta(days=self.history_days)

        attempts = session.scalars(
            select(Attempt)
            .where(Attempt.user_id == user_id, Attempt.created_at <= now)
            .order_by(Attempt.created_at.desc(), Attempt.id.desc())
            .limit(self.attempt_limit)
        ).all()

        mistakes = session.scalars(
            select(MistakeLog)
            .where(MistakeLog.user_id == user_id, MistakeLog.created_at <= now)
            .order_by(MistakeLog.created_at.desc(), MistakeLog.id.desc())
        ).all()

        activities = session.scalars(
            select(ActivityEvent)
            .where(
                ActivityEvent.user_id == user_id,
                ActivityEvent.created_at >= since,
                ActivityEvent.created_at <= now,
            )
            .order_by(ActivityEvent.created_at.desc(), ActivityEvent.id.desc())
        ).all()

        missions = session.scalars(
            select(Mission)
            .where(Mission.user_id == user_id, Mission.created_at >= since, Mission.created_at <= now)
            .order_by(Mission.created_at.desc(), Mission.id.desc())
        ).all()

        progress = session.get(LearnerProgress, user_id)

        return ProfileHistory(
            attempts=[AttemptSnapshot.from_model(a) for a in attempts],
            mistakes=[MistakeSnapshot(m.mistake_type, m.severity) for m in mistakes],
            activities=[
                ActivitySnapshot(a.created_at, a.activity_type, a.session_id) for a in activities
            ],
            missions=[MissionSnapshot(m.created_at, m.completed_at) for m in missions],
            progress=(
                ProgressSnapshot(
                    current_streak=progress.current_streak or 0,
                    best_streak=progress.best_streak or 0,
                    xp=progress.xp or 0,
                )
                if progress is not None
                else None
            ),
        )

    # ------------------------------------------------------------------
    # Full recompute
    # ------------------------------------------------------------------

    def recompute(self, user_id: str, now: datetime | None = None) -> ProfileMetrics:
        """
        Rebuild the profile from history and replace the stored one.

        Returns the derived metrics. Running it twice on unchanged history
        yields identical values.
        """
        now = now or utcnow()
        with self._locks.hold(user_id), self._get_session() as session:
            history = self.load_history(session, user_id, now)
            metrics = compute_profile(history, now)
            values = dict(metrics.to_dict(), last_profile_update=now)

            self._write_with_retry(session, user_id, lambda _profile: values)
            logger.info(
                f"Recomputed profile for {user_id}: accuracy={metrics.accuracy_rate}, "
                f"{metrics.total_questions_attempted} attempts"
            )
            return metrics

    # ------------------------------------------------------------------
    # Incremental paths
    # ------------------------------------------------------------------

    def apply_attempt(self, outcome: AttemptOutcome, now: datetime | None = None) -> CognitiveProfile:
        """
        Fold a single attempt outcome into the profile.

        Replay protection is the caller's job: applying the same attempt
        twice counts it twice.
        """
        now = now or utcnow()

        def changes(profile: CognitiveProfile) -> dict[str, Any]:
            return self._attempt_changes(profile, outcome, now)

        with self._locks.hold(outcome.user_id), self._get_session() as session:
            profile = self._write_with_retry(session, outcome.user_id, changes)
            logger.debug(
                f"Applied attempt {outcome.attempt_id} to {outcome.user_id} "
                f"(passed={outcome.passed}, v{profile.version})"
            )
            return profile

    def _attempt_changes(
        self, profile: CognitiveProfile, outcome: AttemptOutcome, now: datetime
    ) -> dict[str, Any]:
        passed = outcome.passed
        attempted = (profile.total_questions_attempted or 0) + 1
        total_passed = (profile.total_questions_passed or 0) + (1 if passed else 0)

        weakness = dict(profile.topic_weakness_map or {})
        strength = dict(profile.topic_strength_map or {})
        if outcome.topic_id is not None:
            topic = outcome.topic_id
            prev_weakness = weakness.get(topic, DEFAULT_TOPIC_SCORE)
            prev_strength = strength.get(topic, DEFAULT_TOPIC_SCORE)
            # Independent averages: they need not sum to 100
            weakness[topic] = ema_step(prev_weakness, 0 if passed else 100, self.alpha)
            strength[topic] = ema_step(prev_strength, 100 if passed else 0, self.alpha)

        if passed:
            confidence = profile.confidence_index + ADJUSTMENTS["confidence_pass"]
            momentum = profile.momentum_score + ADJUSTMENTS["momentum_pass"]
            win_streak, lose_streak = (profile.current_win_streak or 0) + 1, 0
        else:
            confidence = profile.confidence_index + ADJUSTMENTS["confidence_fail"]
            momentum = profile.momentum_score + ADJUSTMENTS["momentum_fail"]
            win_streak, lose_streak = 0, (profile.current_lose_streak or 0) + 1

        return {
            "total_questions_attempted": attempted,
            "total_questions_passed": total_passed,
            "accuracy_rate": round(total_passed / attempted, 2),
            "topic_weakness_map": weakness,
            "topic_strength_map": strength,
            "confidence_index": int(clamp(confidence)),
            "momentum_score": int(clamp(momentum)),
            "current_win_streak": win_streak,
            "current_lose_streak": lose_streak,
            "last_profile_update": now,
        }

    def register_mistake(
        self, session: Session, user_id: str, mistake_type: MistakeType, severity: int
    ) -> CognitiveProfile:
        """
        Count a logged mistake against the profile.

        Called by the mistake store inside its own transaction.
        """

        def changes(profile: CognitiveProfile) -> dict[str, Any]:
            frequency = dict(profile.mistake_type_frequency or {})
            frequency[mistake_type.value] = frequency.get(mistake_type.value, 0) + 1
            confidence = profile.confidence_index
            if severity >= SEVERE_MISTAKE:
                confidence = max(0, confidence + ADJUSTMENTS["confidence_severe_mistake"])
            return {
                "total_mistakes": (profile.total_mistakes or 0) + 1,
                "mistake_type_frequency": frequency,
                "confidence_index": confidence,
            }

        with self._locks.hold(user_id):
            return self._write_with_retry(session, user_id, changes)

    # ------------------------------------------------------------------
    # Compare-and-swap
    # ------------------------------------------------------------------

    def _write_with_retry(
        self,
        session: Session,
        user_id: str,
        changes: Callable[[CognitiveProfile], dict[str, Any]],
    ) -> CognitiveProfile:
        """
        Read-modify-write the profile, retrying when the version moved.

        Raises ProfileConflictError once ``max_retries`` attempts have lost
        the race.
        """
        for attempt in range(1, self.max_retries + 1):
            profile = self._get_or_create(session, user_id)
            expected = profile.version
            values = changes(profile)
            if self._compare_and_swap(session, user_id, expected, values):
                refreshed = self._fetch(session, user_id)
                if refreshed is None:
                    raise MentorCoreError(f"Cognitive profile for {user_id} vanished after update")
                return refreshed
            logger.warning(
                f"Profile for {user_id} changed concurrently (v{expected}), "
                f"retry {attempt}/{self.max_retries}"
            )
        raise ProfileConflictError(user_id, self.max_retries)

    def _compare_and_swap(
        self, session: Session, user_id: str, expected_version: int, values: dict[str, Any]
    ) -> bool:
        """Write ``values`` only if the stored version is still ``expected_version``."""
        stmt = (
            update(CognitiveProfile)
            .where(
                CognitiveProfile.user_id == user_id,
                CognitiveProfile.version == expected_version,
            )
            .values(**values, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
