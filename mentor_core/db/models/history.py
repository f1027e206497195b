"""
Learner History Models.

Read-mostly tables owned by collaborators of the intelligence core:
- Attempts (one row per submission, written by the attempt pipeline)
- Activity events (session / navigation activity)
- Learner progress (day streaks, XP)
- Skill progress (skill-tree node completion)

Only the columns the core reads are modelled.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mentor_core.core.clock import utcnow

from .base import Base, new_id


class Attempt(Base):
    """A single submission of a learner against a question."""

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[str] = mapped_column(Text, nullable=False)
    topic_id: Mapped[str | None] = mapped_column(Text)

    difficulty: Mapped[int] = mapped_column(Integer, default=1)  # 1-5
    status: Mapped[str] = mapped_column(Text, nullable=False)  # AttemptStatus value
    execution_ms: Mapped[int | None] = mapped_column(Integer)
    hints_used: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_attempts_user_created", "user_id", "created_at"),
        Index("idx_attempts_user_topic", "user_id", "topic_id"),
    )

    def __repr__(self) -> str:
        return f"<Attempt id={self.id} user={self.user_id} status={self.status}>"

    @property
    def is_pass(self) -> bool:
        return self.status == "PASS"


class ActivityEvent(Base):
    """Learner activity (page views, session starts, submissions)."""

    __tablename__ = "activity_events"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    activity_type: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_activity_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<ActivityEvent user={self.user_id} type={self.activity_type}>"


class LearnerProgress(Base):
    """Day streak and XP state from the gamification layer."""

    __tablename__ = "learner_progress"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, default=0)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<LearnerProgress user={self.user_id} streak={self.current_streak}>"


class SkillProgress(Base):
    """Progress of a learner towards unlocking one skill-tree node."""

    __tablename__ = "skill_progress"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    node_id: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    progress: Mapped[float] = mapped_column(Float, default=0.0)  # 0-1
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint("user_id", "node_id", name="uq_skill_progress_user_node"),
    )

    def __repr__(self) -> str:
        return f"<SkillProgress user={self.user_id} node={self.node_id} progress={self.progress}>"

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None
