"""
Adaptive Exercise Selector.

Picks the next exercise for a learner from a pool of unattempted,
unlocked candidates. Each candidate is scored from:
- Difficulty fit against topic mastery
- Topic weakness weight
- Streak continuation (harder item while on a roll)
- New topic start
- Struggling adjustment (favour easy items when the pass rate is low)
- Recent failure penalty
- Bounded random jitter, so equal candidates do not repeat forever

Every selection is recorded as a SelectionEvent with the chosen score,
the pool size and a reason string.
"""
from __future__ import annotations

import math
import random
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from mentor_core.core.clock import utcnow
from mentor_core.db.database import use_session
from mentor_core.db.models import Attempt, CognitiveProfile, SelectionEvent

BASE_SCORE = 100.0
DEFAULT_MASTERY = 0.5
DEFAULT_PASS_RATE = 0.5

# Score components
WEIGHTS = {
    "exact_fit": 30,
    "near_fit": 15,
    "misfit_per_step": 10,
    "weakness_factor": 0.5,
    "streak_bonus": 20,
    "streak_min": 3,
    "new_topic": 25,
    "struggling_pass_rate": 0.4,
    "struggling_easy_bonus": 30,
    "struggling_hard_penalty": 30,
    "struggling_easy_max_difficulty": 2,
    "recent_failure_penalty": 25,
}


@dataclass(frozen=True)
class ExerciseCandidate:
    question_id: str
    topic_id: str | None
    difficulty: int  # 1-5
    order_index: int = 0


@dataclass
class TopicState:
    """What the selector knows about one topic for one learner."""

    mastery: float = DEFAULT_MASTERY  # 0-1
    weakness: float = 0.0  # 0-100
    pass_rate: float = DEFAULT_PASS_RATE
    streak: int = 0  # consecutive passes, newest first
    attempted: bool = False
    recently_failed: bool = False

    @property
    def target_difficulty(self) -> int:
        return max(1, min(5, math.ceil(self.mastery * 5)))


@dataclass
class ScoredCandidate:
    candidate: ExerciseCandidate
    score: float
    reasons: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "New question"


@dataclass
class Selection:
    """The chosen exercise and its audit trail."""

    candidate: ExerciseCandidate
    score: float
    reason: str
    candidate_count: int
    event_id: str | None = None

    @property
    def question_id(self) -> str:
        return self.candidate.question_id


def score_candidate(
    candidate: ExerciseCandidate,
    topic: TopicState,
    first_in_topic: bool,
    jitter: float,
) -> ScoredCandidate:
    """Deterministic score of one candidate plus the supplied jitter."""
    score = BASE_SCORE
    reasons: list[str] = []
    target = topic.target_difficulty

    distance = abs(candidate.difficulty - target)
    if distance == 0:
        score += WEIGHTS["exact_fit"]
        reasons.append("Optimal difficulty")
    elif distance == 1:
        score += WEIGHTS["near_fit"]
    else:
        score -= distance * WEIGHTS["misfit_per_step"]

    if topic.weakness > 0:
        score += topic.weakness * WEIGHTS["weakness_factor"]
        if topic.weakness > 50:
            reasons.append("Weak topic - needs practice")

    if topic.streak >= WEIGHTS["streak_min"] and candidate.difficulty > target:
        score += WEIGHTS["streak_bonus"]
        reasons.append("Challenge mode - on a streak!")

    if not topic.attempted and first_in_topic:
        score += WEIGHTS["new_topic"]
        reasons.append("Start new topic")

    if topic.pass_rate < WEIGHTS["struggling_pass_rate"]:
        if candidate.difficulty <= WEIGHTS["struggling_easy_max_difficulty"]:
            score += WEIGHTS["struggling_easy_bonus"]
            reasons.append("Easier question for practice")
        else:
            score -= WEIGHTS["struggling_hard_penalty"]

    if topic.recently_failed:
        score -= WEIGHTS["recent_failure_penalty"]
        reasons.append("Recent failure in topic - cooling down")

    return ScoredCandidate(candidate=candidate, score=score + jitter, reasons=reasons)


class AdaptiveSelector:
    """
    Scores candidate exercises against the learner's state.

    The random source is injectable so tests can seed it or set
    ``jitter_max=0`` for fully deterministic scores.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        rng: Optional[random.Random] = None,
        jitter_max: float | None = None,
    ):
        self._session = session
        self._rng = rng or random.Random()
        settings = get_settings()
        self.jitter_max = settings.selector_jitter_max if jitter_max is None else jitter_max
        self.recent_failure_hours = settings.selector_recent_failure_hours

    def topic_states(
        self, session: Session, user_id: str, topic_ids: set[str], now: datetime
    ) -> dict[str, TopicState]:
        profile = session.execute(
            select(CognitiveProfile).where(CognitiveProfile.user_id == user_id)
        ).scalar_one_or_none()
        strength_map = dict(profile.topic_strength_map or {}) if profile else {}
        weakness_map = dict(profile.topic_weakness_map or {}) if profile else {}

        attempts = session.scalars(
            select(Attempt)
            .where(Attempt.user_id == user_id, Attempt.topic_id.in_(sorted(topic_ids)))
            .order_by(Attempt.created_at.desc(), Attempt.id.desc())
        ).all()
        by_topic: dict[str, list[Attempt]] = defaultdict(list)
        for attempt in attempts:
            by_topic[attempt.topic_id].append(attempt)

        failure_cutoff = now - timedelta(hours=self.recent_failure_hours)
        states: dict[str, TopicState] = {}
        for topic_id in topic_ids:
            history = by_topic.get(topic_id, [])
            passes = sum(1 for a in history if a.is_pass)
            streak = 0
            for attempt in history:
                if not attempt.is_pass:
                    break
                streak += 1

            states[topic_id] = TopicState(
                mastery=(
                    strength_map[topic_id] / 100 if topic_id in strength_map else DEFAULT_MASTERY
                ),
                weakness=float(weakness_map.get(topic_id, 0.0)),
                pass_rate=passes / len(history) if history else DEFAULT_PASS_RATE,
                streak=streak,
                attempted=bool(history),
                recently_failed=any(
                    not a.is_pass and a.created_at >= failure_cutoff for a in history
                ),
            )
        return states

    def rank(
        self,
        candidates: list[ExerciseCandidate],
        states: dict[str, TopicState],
    ) -> list[ScoredCandidate]:
        """Score every candidate, best first. Consumes one jitter draw per candidate."""
        first_index: dict[str | None, int] = {}
        for c in candidates:
            if c.topic_id not in first_index or c.order_index < first_index[c.topic_id]:
                first_index[c.topic_id] = c.order_index

        scored = [
            score_candidate(
                candidate,
                states.get(candidate.topic_id or "", TopicState()),
                first_in_topic=candidate.order_index == first_index[candidate.topic_id],
                jitter=self._rng.uniform(0, self.jitter_max) if self.jitter_max > 0 else 0.0,
            )
            for candidate in candidates
        ]
        # Stable: pool order breaks exact ties
        return sorted(scored, key=lambda s: s.score, reverse=True)

    def select_next(
        self,
        user_id: str,
        candidates: list[ExerciseCandidate],
        now: datetime | None = None,
    ) -> Selection | None:
        """Pick and record the best candidate; None for an empty pool."""
        if not candidates:
            logger.info(f"No candidate exercises left for {user_id}")
            return None

        now = now or utcnow()
        with self._get_session() as session:
            topic_ids = {c.topic_id for c in candidates if c.topic_id is not None}
            states = self.topic_states(session, user_id, topic_ids, now)
            best = self.rank(candidates, states)[0]

            event = SelectionEvent(
                user_id=user_id,
                question_id=best.candidate.question_id,
                topic_id=best.candidate.topic_id,
                score=best.score,
                candidate_count=len(candidates),
                reason=best.reason,
                created_at=now,
            )
            session.add(event)
            session.flush()

            logger.info(
                f"Selected {best.candidate.question_id} for {user_id} "
                f"(score {best.score:.1f} of {len(candidates)} candidates: {best.reason})"
            )
            return Selection(
                candidate=best.candidate,
                score=best.score,
                reason=best.reason,
                candidate_count=len(candidates),
                event_id=event.id,
            )

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
