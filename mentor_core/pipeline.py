"""
Attempt Pipeline.

Runs the intelligence core for one submitted attempt:

    1. Store the attempt (skipped entirely if the attempt id is known)
    2. Classify the execution result
    3. Record the behavioral mistake (failures only)
    4. Fold the outcome into the cognitive profile
    5. Publish the classification event for feedback generation

Every stage after the attempt is stored is guarded: a failure is logged
and the report carries a neutral value, so attempt submission never
fails because of the intelligence layer.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import get_settings
from mentor_core.core.clock import utcnow
from mentor_core.core.execution import AttemptOutcome, ExecutionResult
from mentor_core.core.taxonomy import AttemptStatus
from mentor_core.db.database import use_session
from mentor_core.db.models import Attempt
from mentor_core.diagnosis.classifier import Classification, Classifier
from mentor_core.feedback.events import ClassificationEvent
from mentor_core.feedback.queue import FeedbackQueue
from mentor_core.mistakes.store import MistakeStore
from mentor_core.profile.engine import CognitiveProfileEngine


@dataclass
class AttemptReport:
    """What the pipeline did with one attempt."""

    attempt_id: str
    skipped: bool = False
    classification: Classification | None = None
    mistake_log_id: str | None = None
    profile_version: int | None = None
    event_published: bool = False

    def to_dict(self) -> dict:
        return {
            "attempt_id": self.attempt_id,
            "skipped": self.skipped,
            "classification": self.classification.to_dict() if self.classification else None,
            "mistake_log_id": self.mistake_log_id,
            "profile_version": self.profile_version,
            "event_published": self.event_published,
        }


class AttemptPipeline:
    """
    Wires the classifier, mistake store, profile engine and feedback queue.

    Usage:
        pipeline = AttemptPipeline()
        report = pipeline.process(user_id, attempt_id, question_id, result)
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        classifier: Optional[Classifier] = None,
        mistake_store: Optional[MistakeStore] = None,
        profile_engine: Optional[CognitiveProfileEngine] = None,
        feedback_queue: Optional[FeedbackQueue] = None,
    ):
        self._session = session
        self.classifier = classifier or Classifier()
        self.profiles = profile_engine or CognitiveProfileEngine(session)
        self.mistakes = mistake_store or MistakeStore(session, self.profiles)
        self.feedback_queue = feedback_queue or FeedbackQueue(
            maxsize=get_settings().feedback_queue_maxsize
        )

    def process(
        self,
        user_id: str,
        attempt_id: str,
        question_id: str,
        result: ExecutionResult,
        topic_id: str | None = None,
        difficulty: int = 1,
        now: datetime | None = None,
    ) -> AttemptReport:
        now = now or utcnow()
        report = AttemptReport(attempt_id=attempt_id)

        if not self._store_attempt(user_id, attempt_id, question_id, result, topic_id, difficulty, now):
            logger.info(f"Attempt {attempt_id} already processed, skipping")
            report.skipped = True
            return report

        try:
            report.classification = self.classifier.classify(result)
        except Exception as e:
            logger.warning(f"Classification failed for attempt {attempt_id}: {e}")

        passed = result.parsed_status == AttemptStatus.PASS and not result.failed_tests

        if not passed:
            try:
                log = self.mistakes.record(
                    user_id, attempt_id, question_id, result, topic_id=topic_id, now=now
                )
                report.mistake_log_id = log.id if log else None
            except Exception as e:
                logger.warning(f"Mistake recording failed for attempt {attempt_id}: {e}")

        try:
            profile = self.profiles.apply_attempt(
                AttemptOutcome(
                    attempt_id=attempt_id,
                    user_id=user_id,
                    question_id=question_id,
                    topic_id=topic_id,
                    passed=passed,
                    difficulty=difficulty,
                    duration_ms=result.duration_ms,
                ),
                now=now,
            )
            report.profile_version = profile.version
        except Exception as e:
            logger.warning(f"Profile update failed for attempt {attempt_id}: {e}")

        if report.classification is not None:
            event = ClassificationEvent.from_classification(
                report.classification,
                user_id=user_id,
                attempt_id=attempt_id,
                question_id=question_id,
                mistake_log_id=report.mistake_log_id,
            )
            report.event_published = self.feedback_queue.publish(event)

        return report

    def _store_attempt(
        self,
        user_id: str,
        attempt_id: str,
        question_id: str,
        result: ExecutionResult,
        topic_id: str | None,
        difficulty: int,
        now: datetime,
    ) -> bool:
        """Insert the attempt row. False if the attempt id is already stored."""
        status = result.parsed_status
        with self._get_session() as session:
            if session.get(Attempt, attempt_id) is not None:
                return False
            session.add(
                Attempt(
                    id=attempt_id,
                    user_id=user_id,
                    question_id=question_id,
                    topic_id=topic_id,
                    difficulty=difficulty,
                    status=status.value if status else str(result.status),
                    execution_ms=result.duration_ms,
                    created_at=now,
                )
            )
            session.flush()
            return True

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
