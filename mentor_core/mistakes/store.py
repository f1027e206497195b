"""
Mistake Store.

Append-only log of classified mistakes with recurrence detection and
pattern queries for dashboards and mission generation.

Recurrence is a count-then-insert against the learner's recent history
for the same mistake type and skill area. Concurrent attempts by the same
learner can race on that count; the worst case is one recurring mistake
recorded as first-time, so no lock is taken.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import get_settings
from mentor_core.core.clock import utcnow
from mentor_core.core.errors import MistakeNotFoundError
from mentor_core.core.execution import ExecutionResult
from mentor_core.core.scoring import round_half_up
from mentor_core.core.taxonomy import MistakeType, SkillArea, TrendDirection
from mentor_core.db.database import use_session
from mentor_core.db.models import MistakeLog
from mentor_core.mistakes.analyzer import analyze_mistake
from mentor_core.profile.engine import CognitiveProfileEngine

MAX_RECURRING_PATTERNS = 10


@dataclass
class MistakeTrend:
    """Week-over-week mistake counts."""

    recent_week: int
    previous_week: int
    direction: TrendDirection
    percent_change: int

    def to_dict(self) -> dict:
        return {
            "recent_week": self.recent_week,
            "previous_week": self.previous_week,
            "direction": self.direction.value,
            "percent_change": self.percent_change,
        }


@dataclass
class MistakePatterns:
    """Aggregated mistake history of one learner."""

    by_type: list[tuple[str, int]] = field(default_factory=list)
    by_skill_area: list[tuple[str, int]] = field(default_factory=list)
    recurring: list[dict] = field(default_factory=list)
    trend: MistakeTrend = field(
        default_factory=lambda: MistakeTrend(0, 0, TrendDirection.STABLE, 0)
    )

    @property
    def recurring_types(self) -> list[str]:
        return [entry["mistake_type"] for entry in self.recurring]

    def to_dict(self) -> dict:
        return {
            "by_type": [{"type": t, "count": c} for t, c in self.by_type],
            "by_skill_area": [{"area": a, "count": c} for a, c in self.by_skill_area],
            "recurring": list(self.recurring),
            "trend": self.trend.to_dict(),
        }


def compute_trend(recent_week: int, previous_week: int) -> MistakeTrend:
    if recent_week < previous_week:
        direction = TrendDirection.IMPROVING
    elif recent_week > previous_week:
        direction = TrendDirection.WORSENING
    else:
        direction = TrendDirection.STABLE

    percent_change = 0
    if previous_week > 0:
        percent_change = round_half_up((recent_week - previous_week) / previous_week * 100)

    return MistakeTrend(recent_week, previous_week, direction, percent_change)


class MistakeStore:
    """
    Records behavioral mistakes and answers pattern queries.

    Recording a mistake also updates the learner's cognitive profile
    counters; this is the only write path from the store into the
    profile engine.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        profile_engine: Optional[CognitiveProfileEngine] = None,
    ):
        self._session = session
        self._profiles = profile_engine or CognitiveProfileEngine(session)
        settings = get_settings()
        self.window_days = settings.recurrence_window_days
        self.threshold = settings.recurrence_threshold
        self.snippet_max_chars = settings.snippet_max_chars
        self.error_max_chars = settings.error_max_chars

    def record(
        self,
        user_id: str,
        attempt_id: str,
        question_id: str,
        result: ExecutionResult,
        topic_id: str | None = None,
        now: datetime | None = None,
    ) -> MistakeLog | None:
        """
        Classify and log the mistake behind a failed attempt.

        Returns None when the attempt passed.
        """
        analysis = analyze_mistake(result)
        if analysis is None:
            return None

        now = now or utcnow()
        with self._get_session() as session:
            prior = self.count_recent(
                session, user_id, analysis.mistake_type, analysis.skill_area, now
            )
            is_recurring = prior >= self.threshold

            error = result.compile_error or result.runtime_error or result.stderr
            log = MistakeLog(
                user_id=user_id,
                question_id=question_id,
                attempt_id=attempt_id,
                mistake_type=analysis.mistake_type.value,
                severity=analysis.severity,
                description=analysis.description,
                code_context=result.code[: self.snippet_max_chars] if result.code else None,
                error_message=error[: self.error_max_chars] if error else None,
                is_recurring=is_recurring,
                topic_id=topic_id,
                skill_area=analysis.skill_area.value if analysis.skill_area else None,
                created_at=now,
            )
            session.add(log)
            session.flush()

            self._profiles.register_mistake(
                session, user_id, analysis.mistake_type, analysis.severity
            )

            logger.info(
                f"Logged {analysis.mistake_type.value} mistake for {user_id} "
                f"(severity {analysis.severity}, recurring={is_recurring})"
            )
            return log

    def count_recent(
        self,
        session: Session,
        user_id: str,
        mistake_type: MistakeType,
        skill_area: SkillArea | None,
        now: datetime,
    ) -> int:
        """Prior logs for the same user, type and skill area inside the window."""
        since = now - timedelta(days=self.window_days)
        area_clause = (
            MistakeLog.skill_area.is_(None)
            if skill_area is None
            else MistakeLog.skill_area == skill_area.value
        )
        stmt = (
            select(func.count())
            .select_from(MistakeLog)
            .where(
                MistakeLog.user_id == user_id,
                MistakeLog.mistake_type == mistake_type.value,
                area_clause,
                MistakeLog.created_at >= since,
                MistakeLog.created_at <= now,
            )
        )
        return session.execute(stmt).scalar_one()

    def get_patterns(self, user_id: str, now: datetime | None = None) -> MistakePatterns:
        """Counts by type and skill area, recent recurring entries and the weekly trend."""
        now = now or utcnow()
        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)

        with self._get_session() as session:
            count = func.count(MistakeLog.id)
            by_type = session.execute(
                select(MistakeLog.mistake_type, count)
                .where(MistakeLog.user_id == user_id)
                .group_by(MistakeLog.mistake_type)
                .order_by(count.desc(), MistakeLog.mistake_type)
            ).all()

            by_area = session.execute(
                select(MistakeLog.skill_area, count)
                .where(MistakeLog.user_id == user_id, MistakeLog.skill_area.is_not(None))
                .group_by(MistakeLog.skill_area)
                .order_by(count.desc(), MistakeLog.skill_area)
            ).all()

            recurring = session.scalars(
                select(MistakeLog)
                .where(MistakeLog.user_id == user_id, MistakeLog.is_recurring.is_(True))
                .order_by(MistakeLog.created_at.desc(), MistakeLog.id.desc())
                .limit(MAX_RECURRING_PATTERNS)
            ).all()

            recent_week = self._count_between(session, user_id, week_ago, None)
            previous_week = self._count_between(session, user_id, two_weeks_ago, week_ago)

            return MistakePatterns(
                by_type=[(row[0], row[1]) for row in by_type],
                by_skill_area=[(row[0], row[1]) for row in by_area],
                recurring=[
                    {
                        "mistake_type": m.mistake_type,
                        "skill_area": m.skill_area,
                        "question_id": m.question_id,
                        "description": m.description,
                        "created_at": m.created_at,
                    }
                    for m in recurring
                ],
                trend=compute_trend(recent_week, previous_week),
            )

    def _count_between(
        self, session: Session, user_id: str, start: datetime, end: datetime | None
    ) -> int:
        """Logs created in [start, end); an open end counts everything since start."""
        stmt = (
            select(func.count())
            .select_from(MistakeLog)
            .where(MistakeLog.user_id == user_id, MistakeLog.created_at >= start)
        )
        if end is not None:
            stmt = stmt.where(MistakeLog.created_at < end)
        return session.execute(stmt).scalar_one()

    def resolve(
        self, mistake_id: str, lessons_learned: str | None = None, now: datetime | None = None
    ) -> MistakeLog:
        """
        Mark a mistake as resolved.

        Resolution is one-way: resolving again keeps the first timestamp
        and only fills in a lesson if none was recorded.
        """
        with self._get_session() as session:
            log = session.get(MistakeLog, mistake_id)
            if log is None:
                raise MistakeNotFoundError(f"Mistake log not found: {mistake_id}")

            if not log.was_resolved:
                log.was_resolved = True
                log.resolved_at = now or utcnow()
                logger.info(f"Resolved mistake {mistake_id} for {log.user_id}")
            if lessons_learned and not log.lessons_learned:
                log.lessons_learned = lessons_learned
            session.flush()
            return log

    def recent_for_user(self, user_id: str, limit: int = 20) -> list[MistakeLog]:
        """Most recent mistakes of a learner, newest first."""
        with self._get_session() as session:
            return list(
                session.scalars(
                    select(MistakeLog)
                    .where(MistakeLog.user_id == user_id)
                    .order_by(MistakeLog.created_at.desc(), MistakeLog.id.desc())
                    .limit(limit)
                ).all()
            )

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)


