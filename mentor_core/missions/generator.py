"""
Adaptive Mission Generator.

Plans personalised daily missions from a snapshot of the learner's state:
- Cognitive profile (burnout risk, confidence, momentum, topic weakness)
- Day streak and losing streak
- Recurring mistake patterns
- Incomplete skill-tree nodes

Each triggered condition contributes exactly one mission at a fixed
priority; balanced fillers complete the set. Planning is a pure function
of the snapshot, so the same state always yields the same ranked list.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from mentor_core.core.clock import utcnow
from mentor_core.core.scoring import round_half_up
from mentor_core.core.taxonomy import MissionType, MistakeType
from mentor_core.db.database import use_session
from mentor_core.db.models import CognitiveProfile, LearnerProgress, SkillProgress
from mentor_core.mistakes.store import MistakePatterns, MistakeStore
from mentor_core.profile.engine import CognitiveProfileEngine

MAX_SKILL_GAPS = 5

# State thresholds that trigger a mission
THRESHOLDS = {
    "burnout_risk": 60,  # >
    "weak_topic": 50,  # >
    "low_confidence": 40,  # <
    "low_momentum": 40,  # <
    "speed_accuracy": 0.7,  # > enables SPEED_CHALLENGE filler
    "accuracy_focus": 0.6,  # < enables ACCURACY_FOCUS filler
}

PRIORITIES = {
    MissionType.BURNOUT_PREVENTION: 95,
    MissionType.STREAK_PROTECTION: 90,
    MissionType.MISTAKE_RECOVERY: 85,
    MissionType.WEAKNESS_TRAINING: 80,
    MissionType.CONFIDENCE_BOOST: 75,
    MissionType.MOMENTUM_PUSH: 70,
    MissionType.SKILL_UNLOCK: 65,
    MissionType.ACCURACY_FOCUS: 60,
    MissionType.SPEED_CHALLENGE: 55,
    MissionType.REVIEW_SESSION: 50,
}

RECOVERY_DESCRIPTIONS = {
    MistakeType.LOGIC: "Practice logic problems to strengthen your algorithmic thinking",
    MistakeType.SYNTAX: "Work on syntax drills to build muscle memory",
    MistakeType.TIMEOUT: "Focus on efficiency and avoiding infinite loops",
    MistakeType.MISUNDERSTANDING: "Practice breaking down problem statements",
    MistakeType.CARELESS: "Slow down and double-check your solutions",
    MistakeType.MEMORY: "Watch recursion depth and data structure sizes",
    MistakeType.EDGE_CASE: "Practice identifying and handling edge cases",
    MistakeType.TYPE_ERROR: "Focus on type-safe programming patterns",
    MistakeType.NULL_HANDLING: "Check for null and empty values before using them",
    MistakeType.OUTPUT_FORMAT: "Compare your output character by character with the expected one",
    MistakeType.PARTIAL_SOLUTION: "Test your solution against boundary inputs before submitting",
    MistakeType.HARDCODING: "Solve the general case instead of the sample inputs",
    MistakeType.INCOMPLETE: "Finish a complete first draft before submitting",
}


@dataclass
class MissionTemplate:
    """A planned mission, not yet scheduled."""

    mission_type: MissionType
    title: str
    description: str
    target_value: int
    xp_reward: int
    difficulty_level: int
    priority_score: int
    generated_reason: str
    target_topic_id: str | None = None
    target_skill_area: str | None = None
    target_mistake_type: MistakeType | None = None

    def to_dict(self) -> dict:
        return {
            "mission_type": self.mission_type.value,
            "title": self.title,
            "description": self.description,
            "target_value": self.target_value,
            "xp_reward": self.xp_reward,
            "difficulty_level": self.difficulty_level,
            "priority_score": self.priority_score,
            "generated_reason": self.generated_reason,
            "target_topic_id": self.target_topic_id,
            "target_skill_area": self.target_skill_area,
            "target_mistake_type": (
                self.target_mistake_type.value if self.target_mistake_type else None
            ),
        }


@dataclass(frozen=True)
class SkillGap:
    node_id: str
    title: str
    progress: float  # 0-1


@dataclass(frozen=True)
class RecurringMistake:
    mistake_type: str
    skill_area: str | None = None


@dataclass
class MissionContext:
    """Snapshot of everything mission planning reads."""

    burnout_risk_score: int = 0
    confidence_index: int = 50
    momentum_score: int = 50
    accuracy_rate: float = 0.0
    current_lose_streak: int = 0
    topic_weakness_map: dict[str, float] = field(default_factory=dict)
    day_streak: int = 0
    recurring_mistakes: list[RecurringMistake] = field(default_factory=list)  # newest first
    skill_gaps: list[SkillGap] = field(default_factory=list)

    @classmethod
    def from_sources(
        cls,
        profile: CognitiveProfile,
        progress: LearnerProgress | None,
        patterns: MistakePatterns,
        skill_gaps: list[SkillGap],
    ) -> MissionContext:
        return cls(
            burnout_risk_score=profile.burnout_risk_score,
            confidence_index=profile.confidence_index,
            momentum_score=profile.momentum_score,
            accuracy_rate=profile.accuracy_rate,
            current_lose_streak=profile.current_lose_streak,
            topic_weakness_map=dict(profile.topic_weakness_map or {}),
            day_streak=progress.current_streak if progress else 0,
            recurring_mistakes=[
                RecurringMistake(entry["mistake_type"], entry["skill_area"])
                for entry in patterns.recurring
            ],
            skill_gaps=skill_gaps,
        )


@dataclass
class UserState:
    """Boolean state vector derived from a MissionContext."""

    burnout_risk: bool
    losing_streak: bool
    recurring_mistakes: bool
    weak_topics: bool
    low_confidence: bool
    low_momentum: bool
    skill_gaps: bool


def analyze_user_state(context: MissionContext, streak_min_days: int = 1) -> UserState:
    return UserState(
        burnout_risk=context.burnout_risk_score > THRESHOLDS["burnout_risk"],
        losing_streak=(
            context.current_lose_streak > 0
            and context.day_streak > 0
            and context.day_streak >= streak_min_days
        ),
        recurring_mistakes=len(context.recurring_mistakes) > 0,
        weak_topics=any(v > THRESHOLDS["weak_topic"] for v in context.topic_weakness_map.values()),
        low_confidence=context.confidence_index < THRESHOLDS["low_confidence"],
        low_momentum=context.momentum_score < THRESHOLDS["low_momentum"],
        skill_gaps=len(context.skill_gaps) > 0,
    )


# ----------------------------------------------------------------------
# Mission builders
# ----------------------------------------------------------------------


def burnout_prevention(context: MissionContext) -> MissionTemplate:
    return MissionTemplate(
        mission_type=MissionType.BURNOUT_PREVENTION,
        title="Quick Win Challenge",
        description="Complete just 1 easy question today. Sometimes less is more!",
        target_value=1,
        xp_reward=30,
        difficulty_level=1,
        priority_score=PRIORITIES[MissionType.BURNOUT_PREVENTION],
        generated_reason=(
            f"Burnout risk detected ({context.burnout_risk_score}%). "
            "Light task to maintain habit."
        ),
    )


def streak_protection(context: MissionContext) -> MissionTemplate:
    streak = context.day_streak
    return MissionTemplate(
        mission_type=MissionType.STREAK_PROTECTION,
        title=f"Protect Your {streak}-Day Streak!",
        description="Complete any question to keep your streak alive.",
        target_value=1,
        xp_reward=40 + streak * 2,
        difficulty_level=2,
        priority_score=PRIORITIES[MissionType.STREAK_PROTECTION],
        generated_reason=f"{streak}-day streak at risk. Priority: maintain momentum.",
    )


def _most_frequent_recurring(recurring: list[RecurringMistake]) -> RecurringMistake:
    """Most frequent recurring type; the most recent one wins ties."""
    counts = Counter(m.mistake_type for m in recurring)
    best = max(counts.values())
    return next(m for m in recurring if counts[m.mistake_type] == best)


def mistake_recovery(context: MissionContext) -> MissionTemplate:
    top = _most_frequent_recurring(context.recurring_mistakes)
    mistake_type = MistakeType(top.mistake_type)
    return MissionTemplate(
        mission_type=MissionType.MISTAKE_RECOVERY,
        title=f"Fix {mistake_type.display_name} Mistakes",
        description=RECOVERY_DESCRIPTIONS.get(mistake_type, "Practice to overcome your weak spots"),
        target_value=2,
        xp_reward=60,
        difficulty_level=2,
        priority_score=PRIORITIES[MissionType.MISTAKE_RECOVERY],
        target_mistake_type=mistake_type,
        target_skill_area=top.skill_area,
        generated_reason=(
            f"Recurring {mistake_type.value} errors detected. Targeted practice recommended."
        ),
    )


def weakness_training(context: MissionContext) -> MissionTemplate:
    # Highest weakness first, topic id breaks ties
    weakest_topic = min(
        context.topic_weakness_map.items(), key=lambda item: (-item[1], item[0])
    )[0]
    return MissionTemplate(
        mission_type=MissionType.WEAKNESS_TRAINING,
        title="Strengthen Your Weak Spots",
        description="Focus on topics where you need improvement",
        target_value=3,
        xp_reward=75,
        difficulty_level=3,
        priority_score=PRIORITIES[MissionType.WEAKNESS_TRAINING],
        target_topic_id=weakest_topic,
        generated_reason="Topic weakness detected. Targeted practice will help.",
    )


def confidence_boost(context: MissionContext) -> MissionTemplate:
    return MissionTemplate(
        mission_type=MissionType.CONFIDENCE_BOOST,
        title="Confidence Builder",
        description="Complete 3 questions you're likely to ace. Build momentum!",
        target_value=3,
        xp_reward=50,
        difficulty_level=1,
        priority_score=PRIORITIES[MissionType.CONFIDENCE_BOOST],
        generated_reason=(
            f"Confidence index low ({context.confidence_index}%). Easy wins recommended."
        ),
    )


def momentum_push(context: MissionContext) -> MissionTemplate:
    return MissionTemplate(
        mission_type=MissionType.MOMENTUM_PUSH,
        title="Build Your Momentum",
        description="Get on a roll! Complete 4 questions in one session.",
        target_value=4,
        xp_reward=80,
        difficulty_level=2,
        priority_score=PRIORITIES[MissionType.MOMENTUM_PUSH],
        generated_reason=(
            f"Momentum score low ({context.momentum_score}%). "
            "Extended practice session recommended."
        ),
    )


def skill_unlock(context: MissionContext) -> MissionTemplate:
    # Most progressed node first, node id breaks ties
    top_gap = min(context.skill_gaps, key=lambda g: (-g.progress, g.node_id))
    return MissionTemplate(
        mission_type=MissionType.SKILL_UNLOCK,
        title=f"Unlock: {top_gap.title}",
        description="Make progress toward unlocking new skills",
        target_value=2,
        xp_reward=70,
        difficulty_level=3,
        priority_score=PRIORITIES[MissionType.SKILL_UNLOCK],
        generated_reason=(
            f"{top_gap.title} is {round_half_up(top_gap.progress * 100)}% complete. Keep pushing!"
        ),
    )


def balanced_filler(
    context: MissionContext, existing: list[MissionTemplate]
) -> MissionTemplate | None:
    """First eligible filler whose type is not already planned."""
    existing_types = {m.mission_type for m in existing}
    options: list[MissionTemplate] = []

    if MissionType.REVIEW_SESSION not in existing_types:
        options.append(
            MissionTemplate(
                mission_type=MissionType.REVIEW_SESSION,
                title="Review Session",
                description="Revisit and practice questions you've struggled with before",
                target_value=2,
                xp_reward=45,
                difficulty_level=2,
                priority_score=PRIORITIES[MissionType.REVIEW_SESSION],
                generated_reason="Regular review helps retention.",
            )
        )

    if (
        MissionType.SPEED_CHALLENGE not in existing_types
        and context.accuracy_rate > THRESHOLDS["speed_accuracy"]
    ):
        options.append(
            MissionTemplate(
                mission_type=MissionType.SPEED_CHALLENGE,
                title="Speed Challenge",
                description="Complete 2 questions faster than your average time",
                target_value=2,
                xp_reward=60,
                difficulty_level=3,
                priority_score=PRIORITIES[MissionType.SPEED_CHALLENGE],
                generated_reason="Good accuracy. Time to work on speed.",
            )
        )

    if (
        MissionType.ACCURACY_FOCUS not in existing_types
        and context.accuracy_rate < THRESHOLDS["accuracy_focus"]
    ):
        options.append(
            MissionTemplate(
                mission_type=MissionType.ACCURACY_FOCUS,
                title="Accuracy Focus",
                description="Complete 2 questions without any failed attempts",
                target_value=2,
                xp_reward=55,
                difficulty_level=2,
                priority_score=PRIORITIES[MissionType.ACCURACY_FOCUS],
                generated_reason="Focus on getting it right the first time.",
            )
        )

    return options[0] if options else None


def plan_missions(
    context: MissionContext, count: int = 3, streak_min_days: int = 1
) -> list[MissionTemplate]:
    """
    Plan up to ``count`` missions for ``context``, highest priority first.

    Pure and deterministic.
    """
    state = analyze_user_state(context, streak_min_days)
    missions: list[MissionTemplate] = []

    if state.burnout_risk:
        missions.append(burnout_prevention(context))
    if state.losing_streak:
        missions.append(streak_protection(context))
    if state.recurring_mistakes:
        missions.append(mistake_recovery(context))
    if state.weak_topics:
        missions.append(weakness_training(context))
    if state.low_confidence:
        missions.append(confidence_boost(context))
    if state.low_momentum:
        missions.append(momentum_push(context))
    if state.skill_gaps:
        missions.append(skill_unlock(context))

    while len(missions) < count:
        filler = balanced_filler(context, missions)
        if filler is None:
            break
        missions.append(filler)

    # Stable sort keeps trigger order among equal priorities
    missions.sort(key=lambda m: m.priority_score, reverse=True)
    return missions[:count]


class MissionGenerator:
    """Builds a MissionContext from the database and plans missions."""

    def __init__(
        self,
        session: Optional[Session] = None,
        profile_engine: Optional[CognitiveProfileEngine] = None,
        mistake_store: Optional[MistakeStore] = None,
    ):
        self._session = session
        self._profiles = profile_engine or CognitiveProfileEngine(session)
        self._mistakes = mistake_store or MistakeStore(session, self._profiles)
        settings = get_settings()
        self.default_count = settings.mission_default_count
        self.streak_min_days = settings.streak_protection_min_days

    def build_context(self, user_id: str, now: datetime | None = None) -> MissionContext:
        now = now or utcnow()
        profile = self._profiles.get_or_create(user_id)
        patterns = self._mistakes.get_patterns(user_id, now=now)

        with self._get_session() as session:
            progress = session.get(LearnerProgress, user_id)
            gaps = session.scalars(
                select(SkillProgress)
                .where(SkillProgress.user_id == user_id, SkillProgress.completed_at.is_(None))
                .order_by(SkillProgress.progress.desc(), SkillProgress.node_id)
                .limit(MAX_SKILL_GAPS)
            ).all()
            return MissionContext.from_sources(
                profile=profile,
                progress=progress,
                patterns=patterns,
                skill_gaps=[SkillGap(g.node_id, g.title, g.progress) for g in gaps],
            )

    def generate(
        self, user_id: str, count: int | None = None, now: datetime | None = None
    ) -> list[MissionTemplate]:
        count = count or self.default_count
        context = self.build_context(user_id, now)
        missions = plan_missions(context, count, self.streak_min_days)
        logger.info(
            f"Planned {len(missions)} missions for {user_id}: "
            f"{', '.join(m.mission_type.value for m in missions)}"
        )
        return missions

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
