"""
Mission Scheduler.

Materialises planned missions as daily Mission rows and tracks progress.
A learner has at most one active mission set per day: saving a new set
deactivates the previous one (rows are kept for history).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from mentor_core.core.clock import next_day, start_of_day, utcnow
from mentor_core.core.errors import MissionNotFoundError
from mentor_core.db.database import use_session
from mentor_core.db.models import Mission
from mentor_core.missions.generator import MissionGenerator, MissionTemplate


class MissionScheduler:
    """Saves, lists and advances daily missions."""

    def __init__(
        self,
        session: Optional[Session] = None,
        generator: Optional[MissionGenerator] = None,
    ):
        self._session = session
        self._generator = generator

    @property
    def generator(self) -> MissionGenerator:
        if self._generator is None:
            self._generator = MissionGenerator(self._session)
        return self._generator

    def save(
        self,
        user_id: str,
        templates: list[MissionTemplate],
        scheduled_for: datetime | None = None,
    ) -> list[Mission]:
        """Replace the learner's active mission set for the day of ``scheduled_for``."""
        created_at = scheduled_for or utcnow()
        day = start_of_day(created_at)

        with self._get_session() as session:
            deactivated = session.execute(
                update(Mission)
                .where(
                    Mission.user_id == user_id,
                    Mission.scheduled_for == day,
                    Mission.is_active.is_(True),
                )
                .values(is_active=False)
                .execution_options(synchronize_session="fetch")
            ).rowcount

            missions = [
                Mission(
                    user_id=user_id,
                    mission_type=t.mission_type.value,
                    title=t.title,
                    description=t.description,
                    target_value=t.target_value,
                    xp_reward=t.xp_reward,
                    difficulty_level=t.difficulty_level,
                    priority_score=t.priority_score,
                    target_topic_id=t.target_topic_id,
                    target_skill_area=t.target_skill_area,
                    target_mistake_type=(
                        t.target_mistake_type.value if t.target_mistake_type else None
                    ),
                    generated_reason=t.generated_reason,
                    scheduled_for=day,
                    expires_at=next_day(day),
                    progress=0,
                    xp_earned=0,
                    is_active=True,
                    created_at=created_at,
                )
                for t in templates
            ]
            session.add_all(missions)
            session.flush()

            logger.info(
                f"Scheduled {len(missions)} missions for {user_id} on {day.date()} "
                f"({deactivated} deactivated)"
            )
            return missions

    def active(self, user_id: str, day: datetime | None = None) -> list[Mission]:
        """Active missions for the day, highest priority first."""
        scheduled = start_of_day(day or utcnow())
        with self._get_session() as session:
            return list(
                session.scalars(
                    select(Mission)
                    .where(
                        Mission.user_id == user_id,
                        Mission.scheduled_for == scheduled,
                        Mission.is_active.is_(True),
                    )
                    .order_by(Mission.priority_score.desc(), Mission.created_at, Mission.id)
                ).all()
            )

    def record_progress(
        self, mission_id: str, increment: int = 1, now: datetime | None = None
    ) -> Mission:
        """
        Advance a mission by ``increment``.

        Completed missions are left untouched. Reaching the target sets
        ``completed_at`` and awards the mission XP.
        """
        with self._get_session() as session:
            mission = session.get(Mission, mission_id)
            if mission is None:
                raise MissionNotFoundError(f"Mission not found: {mission_id}")
            if mission.completed_at is not None:
                logger.debug(f"Mission {mission_id} already completed, ignoring progress")
                return mission

            mission.progress = (mission.progress or 0) + increment
            if mission.progress >= mission.target_value:
                mission.completed_at = now or utcnow()
                mission.xp_earned = mission.xp_reward
                logger.info(f"Mission {mission_id} completed (+{mission.xp_reward} XP)")
            session.flush()
            return mission

    def generate_and_save(
        self, user_id: str, count: int | None = None, now: datetime | None = None
    ) -> list[Mission]:
        """Plan today's missions and replace the active set."""
        templates = self.generator.generate(user_id, count, now=now)
        return self.save(user_id, templates, scheduled_for=now)

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
