"""
Unit tests for MistakeStore (recording, recurrence, patterns, resolution).

Runs against the in-memory SQLite session from conftest.
"""

from datetime import timedelta

import pytest

from mentor_core.core.errors import MistakeNotFoundError
from mentor_core.core.taxonomy import AttemptStatus, MistakeType, TrendDirection
from mentor_core.db.models import CognitiveProfile, MistakeLog
from mentor_core.mistakes import MistakeStore, compute_trend

USER = "learner-1"


@pytest.fixture
def store(session):
    return MistakeStore(session=session)


@pytest.fixture
def compile_failure(result_factory):
    return result_factory(
        status=AttemptStatus.COMPILE_ERROR,
        compile_error="Main.java:3: error: ';' expected",
    )


class TestRecord:
    def test_passing_attempt_is_not_logged(self, store, session, result_factory, outcome_factory, now):
        result = result_factory(status=AttemptStatus.PASS, tests=[outcome_factory(0, "1", "1")])

        assert store.record(USER, "a-1", "q-1", result, now=now) is None
        assert session.query(MistakeLog).count() == 0

    def test_logs_derived_fields(self, store, compile_failure, now):
        log = store.record(USER, "a-1", "q-1", compile_failure, topic_id="t-arrays", now=now)

        assert log.mistake_type == MistakeType.SYNTAX.value
        assert log.severity == 2
        assert log.skill_area == "arrays"
        assert log.topic_id == "t-arrays"
        assert log.error_message.startswith("Main.java:3")
        assert log.is_recurring is False
        assert log.was_resolved is False
        assert log.created_at == now

    def test_long_code_is_truncated(self, store, result_factory, now):
        result = result_factory(code="x" * 5_000)
        log = store.record(USER, "a-1", "q-1", result, now=now)
        assert len(log.code_context) == store.snippet_max_chars

    def test_third_occurrence_in_window_is_recurring(self, store, compile_failure, now):
        logs = [
            store.record(USER, f"a-{i}", "q-1", compile_failure, now=now + timedelta(hours=i))
            for i in range(3)
        ]
        assert [log.is_recurring for log in logs] == [False, False, True]

    def test_occurrences_outside_window_do_not_count(self, store, compile_failure, now):
        store.record(USER, "a-0", "q-1", compile_failure, now=now - timedelta(days=9))
        store.record(USER, "a-1", "q-1", compile_failure, now=now - timedelta(days=8))

        log = store.record(USER, "a-2", "q-1", compile_failure, now=now)

        assert log.is_recurring is False

    def test_other_learners_do_not_count(self, store, compile_failure, now):
        store.record("someone-else", "a-0", "q-1", compile_failure, now=now)
        store.record("someone-else", "a-1", "q-1", compile_failure, now=now)

        assert store.record(USER, "a-2", "q-1", compile_failure, now=now).is_recurring is False

    def test_profile_counters_updated(self, store, session, result_factory, now):
        result = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error="java.lang.NullPointerException",
        )

        store.record(USER, "a-1", "q-1", result, now=now)

        profile = session.query(CognitiveProfile).filter_by(user_id=USER).one()
        assert profile.total_mistakes == 1
        assert profile.mistake_type_frequency == {"NULL_HANDLING": 1}
        # Severity 3 costs confidence
        assert profile.confidence_index == 47

    def test_minor_mistake_keeps_confidence(self, store, session, compile_failure, now):
        store.record(USER, "a-1", "q-1", compile_failure, now=now)

        profile = session.query(CognitiveProfile).filter_by(user_id=USER).one()
        assert profile.confidence_index == 50


class TestPatterns:
    def test_counts_and_ordering(self, store, compile_failure, result_factory, now):
        runtime = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error="java.lang.NullPointerException",
        )
        for i in range(3):
            store.record(USER, f"s-{i}", "q-1", compile_failure, now=now - timedelta(hours=3 - i))
        store.record(USER, "r-0", "q-2", runtime, now=now)

        patterns = store.get_patterns(USER, now=now)

        assert patterns.by_type == [("SYNTAX", 3), ("NULL_HANDLING", 1)]
        assert patterns.by_skill_area == [("arrays", 4)]
        assert patterns.recurring_types == ["SYNTAX"]

    def test_worsening_trend(self, store, compile_failure, now):
        store.record(USER, "old", "q-1", compile_failure, now=now - timedelta(days=10))
        for i in range(3):
            store.record(USER, f"new-{i}", "q-1", compile_failure, now=now - timedelta(days=i))

        trend = store.get_patterns(USER, now=now).trend

        assert trend.recent_week == 3
        assert trend.previous_week == 1
        assert trend.direction == TrendDirection.WORSENING
        assert trend.percent_change == 200

    def test_empty_history(self, store, now):
        patterns = store.get_patterns(USER, now=now)

        assert patterns.by_type == []
        assert patterns.trend.direction == TrendDirection.STABLE
        assert patterns.trend.percent_change == 0

    def test_to_dict(self, store, compile_failure, now):
        store.record(USER, "a-1", "q-1", compile_failure, now=now)
        data = store.get_patterns(USER, now=now).to_dict()

        assert data["by_type"] == [{"type": "SYNTAX", "count": 1}]
        assert data["trend"]["direction"] == "worsening"


class TestTrend:
    @pytest.mark.parametrize(
        "recent,previous,direction,change",
        [
            (1, 4, TrendDirection.IMPROVING, -75),
            (2, 2, TrendDirection.STABLE, 0),
            (5, 0, TrendDirection.WORSENING, 0),
            (1, 8, TrendDirection.IMPROVING, -87),  # -87.5 rounds half up
        ],
    )
    def test_compute_trend(self, recent, previous, direction, change):
        trend = compute_trend(recent, previous)
        assert trend.direction == direction
        assert trend.percent_change == change


class TestResolve:
    def test_resolution_is_one_way(self, store, compile_failure, now):
        log = store.record(USER, "a-1", "q-1", compile_failure, now=now)

        store.resolve(log.id, "Always close statements", now=now + timedelta(days=1))
        again = store.resolve(log.id, "Something else", now=now + timedelta(days=2))

        assert again.was_resolved is True
        assert again.resolved_at == now + timedelta(days=1)
        assert again.lessons_learned == "Always close statements"

    def test_lesson_added_later(self, store, compile_failure, now):
        log = store.record(USER, "a-1", "q-1", compile_failure, now=now)

        store.resolve(log.id, now=now)
        resolved = store.resolve(log.id, "Read the compiler message", now=now)

        assert resolved.lessons_learned == "Read the compiler message"

    def test_unknown_mistake(self, store):
        with pytest.raises(MistakeNotFoundError):
            store.resolve("does-not-exist")

    def test_recent_for_user(self, store, compile_failure, now):
        for i in range(3):
            store.record(USER, f"a-{i}", "q-1", compile_failure, now=now + timedelta(minutes=i))

        recent = store.recent_for_user(USER, limit=2)

        assert [m.attempt_id for m in recent] == ["a-2", "a-1"]
