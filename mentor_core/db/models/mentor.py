"""
Intelligence Core Models.

SQLAlchemy models owned by the intelligence core:
- Mistake logs (append-only, recurrence flagged at write time)
- Cognitive profiles (one per learner, optimistic version column)
- Missions (materialised daily mission sets)
- Selection events (adaptive selector audit trail)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from mentor_core.core.clock import utcnow

from .base import Base, new_id


class MistakeLog(Base):
    """
    One classified mistake per failed attempt.

    ``is_recurring`` is computed once at creation and never recomputed.
    ``was_resolved`` only ever moves from False to True.
    """

    __tablename__ = "mistake_logs"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[str] = mapped_column(Text, nullable=False)
    attempt_id: Mapped[str] = mapped_column(Text, nullable=False)

    mistake_type: Mapped[str] = mapped_column(Text, nullable=False)  # MistakeType value
    severity: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5
    description: Mapped[str] = mapped_column(Text, default="")
    code_context: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)

    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    topic_id: Mapped[str | None] = mapped_column(Text)
    skill_area: Mapped[str | None] = mapped_column(Text)  # SkillArea value

    # Resolution
    was_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)
    lessons_learned: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_mistake_recurrence", "user_id", "mistake_type", "skill_area", "created_at"),
        Index("idx_mistake_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MistakeLog user={self.user_id} type={self.mistake_type} "
            f"recurring={self.is_recurring}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "attempt_id": self.attempt_id,
            "mistake_type": self.mistake_type,
            "severity": self.severity,
            "description": self.description,
            "is_recurring": self.is_recurring,
            "topic_id": self.topic_id,
            "skill_area": self.skill_area,
            "was_resolved": self.was_resolved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CognitiveProfile(Base):
    """
    Longitudinal learner profile.

    Scores are on a 0-100 scale unless noted. Topic maps are keyed by topic
    id and maintained as independent moving averages (they need not sum
    to 100). ``version`` is bumped on every write for compare-and-swap.
    """

    __tablename__ = "cognitive_profiles"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # Performance (rates are 0-1, times in seconds)
    accuracy_rate: Mapped[float] = mapped_column(Float, default=0.0)
    retry_rate: Mapped[float] = mapped_column(Float, default=1.0)
    avg_solve_time: Mapped[int] = mapped_column(Integer, default=0)
    avg_solve_time_by_difficulty: Mapped[dict] = mapped_column(JSON, default=dict)

    # Topic and mistake maps
    topic_weakness_map: Mapped[dict] = mapped_column(JSON, default=dict)
    topic_strength_map: Mapped[dict] = mapped_column(JSON, default=dict)
    mistake_type_frequency: Mapped[dict] = mapped_column(JSON, default=dict)

    # Behavioural scores
    streak_stability_score: Mapped[int] = mapped_column(Integer, default=50)
    momentum_score: Mapped[int] = mapped_column(Integer, default=50)
    burnout_risk_score: Mapped[int] = mapped_column(Integer, default=0)
    confidence_index: Mapped[int] = mapped_column(Integer, default=50)
    engagement_score: Mapped[int] = mapped_column(Integer, default=50)
    consistency_score: Mapped[int] = mapped_column(Integer, default=50)

    # Habits
    preferred_session_length: Mapped[int] = mapped_column(Integer, default=30)  # minutes
    peak_performance_hour: Mapped[int] = mapped_column(Integer, default=14)  # 0-23
    learning_velocity: Mapped[float] = mapped_column(Float, default=1.0)  # XP per day

    # Counters and streaks
    total_questions_attempted: Mapped[int] = mapped_column(Integer, default=0)
    total_questions_passed: Mapped[int] = mapped_column(Integer, default=0)
    total_mistakes: Mapped[int] = mapped_column(Integer, default=0)
    current_win_streak: Mapped[int] = mapped_column(Integer, default=0)
    current_lose_streak: Mapped[int] = mapped_column(Integer, default=0)

    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_profile_update: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<CognitiveProfile user={self.user_id} accuracy={self.accuracy_rate} "
            f"v{self.version}>"
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "accuracy_rate": self.accuracy_rate,
            "retry_rate": self.retry_rate,
            "avg_solve_time": self.avg_solve_time,
            "avg_solve_time_by_difficulty": dict(self.avg_solve_time_by_difficulty or {}),
            "topic_weakness_map": dict(self.topic_weakness_map or {}),
            "topic_strength_map": dict(self.topic_strength_map or {}),
            "mistake_type_frequency": dict(self.mistake_type_frequency or {}),
            "streak_stability_score": self.streak_stability_score,
            "momentum_score": self.momentum_score,
            "burnout_risk_score": self.burnout_risk_score,
            "confidence_index": self.confidence_index,
            "engagement_score": self.engagement_score,
            "consistency_score": self.consistency_score,
            "preferred_session_length": self.preferred_session_length,
            "peak_performance_hour": self.peak_performance_hour,
            "learning_velocity": self.learning_velocity,
            "total_questions_attempted": self.total_questions_attempted,
            "total_questions_passed": self.total_questions_passed,
            "total_mistakes": self.total_mistakes,
            "current_win_streak": self.current_win_streak,
            "current_lose_streak": self.current_lose_streak,
            "version": self.version,
        }


class Mission(Base):
    """
    A materialised daily mission.

    At most one active set per learner per scheduled day; regenerating
    deactivates the previous set instead of deleting it.
    """

    __tablename__ = "missions"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)

    mission_type: Mapped[str] = mapped_column(Text, nullable=False)  # MissionType value
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    target_value: Mapped[int] = mapped_column(Integer, default=1)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0)
    xp_earned: Mapped[int] = mapped_column(Integer, default=0)
    difficulty_level: Mapped[int] = mapped_column(Integer, default=1)
    priority_score: Mapped[int] = mapped_column(Integer, default=0)

    target_topic_id: Mapped[str | None] = mapped_column(Text)
    target_skill_area: Mapped[str | None] = mapped_column(Text)
    target_mistake_type: Mapped[str | None] = mapped_column(Text)
    generated_reason: Mapped[str] = mapped_column(Text, default="")

    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_missions_user_day", "user_id", "scheduled_for", "is_active"),
        Index("idx_missions_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Mission user={self.user_id} type={self.mission_type} active={self.is_active}>"

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


class SelectionEvent(Base):
    """Audit record of one adaptive next-exercise selection."""

    __tablename__ = "selection_events"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[str] = mapped_column(Text, nullable=False)
    topic_id: Mapped[str | None] = mapped_column(Text)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    candidate_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_selection_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<SelectionEvent user={self.user_id} question={self.question_id} score={self.score:.1f}>"
