"""
Unit tests for the adaptive exercise selector.

Scoring tests use ``jitter_max=0`` so scores are exact.
"""

import random
from datetime import timedelta

import pytest

from mentor_core.adaptive import (
    AdaptiveSelector,
    ExerciseCandidate,
    ScoredCandidate,
    TopicState,
    score_candidate,
)
from mentor_core.db.models import CognitiveProfile, SelectionEvent

USER = "learner-1"


@pytest.fixture
def selector(session):
    return AdaptiveSelector(session=session, rng=random.Random(7), jitter_max=0)


class TestScoring:
    def test_target_difficulty_from_mastery(self):
        assert TopicState(mastery=0.0).target_difficulty == 1
        assert TopicState(mastery=0.5).target_difficulty == 3
        assert TopicState(mastery=0.81).target_difficulty == 5
        assert TopicState(mastery=1.0).target_difficulty == 5

    def test_exact_fit(self):
        scored = score_candidate(ExerciseCandidate("q", "t", 3), TopicState(attempted=True), False, 0)

        assert scored.score == 130
        assert scored.reason == "Optimal difficulty"

    def test_misfit_penalty_per_step(self):
        scored = score_candidate(ExerciseCandidate("q", "t", 5), TopicState(mastery=0.2, attempted=True), False, 0)
        # target 1, distance 4
        assert scored.score == 60

    def test_weak_topic_bonus(self):
        scored = score_candidate(
            ExerciseCandidate("q", "t", 4), TopicState(weakness=80, attempted=True), False, 0
        )

        assert scored.score == 100 + 15 + 40
        assert "Weak topic - needs practice" in scored.reasons

    def test_streak_prefers_harder_items(self):
        topic = TopicState(mastery=0.4, streak=3, attempted=True)

        harder = score_candidate(ExerciseCandidate("q", "t", 3), topic, False, 0)
        at_target = score_candidate(ExerciseCandidate("q", "t", 2), topic, False, 0)

        assert harder.score == 135
        assert at_target.score == 130
        assert "Challenge mode - on a streak!" in harder.reasons

    def test_new_topic_only_for_first_item(self):
        topic = TopicState()

        first = score_candidate(ExerciseCandidate("q1", "t", 3), topic, True, 0)
        later = score_candidate(ExerciseCandidate("q2", "t", 3), topic, False, 0)

        assert first.score - later.score == 25
        assert first.reason == "Optimal difficulty; Start new topic"

    def test_struggling_learner_gets_easy_items(self):
        topic = TopicState(pass_rate=0.2, attempted=True)

        easy = score_candidate(ExerciseCandidate("q", "t", 1), topic, False, 0)
        hard = score_candidate(ExerciseCandidate("q", "t", 4), topic, False, 0)

        assert easy.score == 100 - 20 + 30
        assert hard.score == 100 + 15 - 30
        assert "Easier question for practice" in easy.reasons

    def test_recent_failure_is_a_penalty(self):
        candidate = ExerciseCandidate("q", "t", 3)

        fresh = score_candidate(candidate, TopicState(attempted=True), False, 0)
        failed = score_candidate(candidate, TopicState(attempted=True, recently_failed=True), False, 0)

        assert fresh.score - failed.score == 25
        assert "Recent failure in topic - cooling down" in failed.reasons

    def test_default_reason(self):
        scored = ScoredCandidate(ExerciseCandidate("q", "t", 2), 115.0)
        assert scored.reason == "New question"


class TestSelection:
    def test_empty_pool(self, selector, session):
        assert selector.select_next(USER, []) is None
        assert session.query(SelectionEvent).count() == 0

    def test_picks_best_and_records_event(self, selector, session, now):
        pool = [
            ExerciseCandidate("q-easy", "arrays", 1, order_index=0),
            ExerciseCandidate("q-mid", "arrays", 3, order_index=1),
        ]

        selection = selector.select_next(USER, pool, now=now)

        # q-easy: 100 - 20 + 25 (new topic); q-mid: 100 + 30
        assert selection.question_id == "q-mid"
        assert selection.score == 130
        assert selection.candidate_count == 2

        event = session.get(SelectionEvent, selection.event_id)
        assert event.question_id == "q-mid"
        assert event.reason == "Optimal difficulty"
        assert event.created_at == now

    def test_new_topic_bonus_goes_to_lowest_order_index(self, selector):
        pool = [
            ExerciseCandidate("q-2", "loops", 3, order_index=5),
            ExerciseCandidate("q-1", "loops", 3, order_index=2),
        ]

        ranked = selector.rank(pool, {})

        assert ranked[0].candidate.question_id == "q-1"
        assert ranked[0].score == 155

    def test_exact_ties_keep_pool_order(self, selector):
        pool = [ExerciseCandidate(f"q-{i}", None, 3, order_index=1) for i in range(3)]

        ranked = selector.rank(pool, {})

        assert [s.candidate.question_id for s in ranked] == ["q-0", "q-1", "q-2"]

    def test_topic_state_from_history(self, selector, session, attempt_factory, now):
        session.add(CognitiveProfile(user_id=USER, topic_strength_map={"arrays": 80}, topic_weakness_map={"arrays": 20}))
        for hours in (1, 2, 3):
            attempt_factory(USER, True, now - timedelta(hours=hours), topic_id="arrays")
        attempt_factory(USER, False, now - timedelta(days=3), topic_id="arrays")
        session.flush()

        states = selector.topic_states(session, USER, {"arrays", "graphs"}, now)

        arrays = states["arrays"]
        assert arrays.mastery == 0.8
        assert arrays.target_difficulty == 4
        assert arrays.weakness == 20
        assert arrays.streak == 3
        assert arrays.pass_rate == 0.75
        assert arrays.attempted is True
        assert arrays.recently_failed is False

        graphs = states["graphs"]
        assert graphs.attempted is False
        assert graphs.mastery == 0.5

    def test_recent_failure_detected(self, selector, session, attempt_factory, now):
        attempt_factory(USER, False, now - timedelta(hours=2), topic_id="arrays")

        states = selector.topic_states(session, USER, {"arrays"}, now)

        assert states["arrays"].recently_failed is True
        assert states["arrays"].streak == 0


class TestJitter:
    def test_seeded_selectors_agree(self, session, now):
        pool = [ExerciseCandidate(f"q-{i}", "arrays", 1 + i % 5, order_index=i) for i in range(10)]

        first = AdaptiveSelector(session=session, rng=random.Random(42), jitter_max=20)
        second = AdaptiveSelector(session=session, rng=random.Random(42), jitter_max=20)

        assert [s.score for s in first.rank(pool, {})] == [s.score for s in second.rank(pool, {})]

    def test_jitter_is_bounded(self, session):
        selector = AdaptiveSelector(session=session, rng=random.Random(1), jitter_max=20)
        pool = [ExerciseCandidate("q", "t", 3)]

        for _ in range(50):
            [scored] = selector.rank(pool, {})
            # 100 + 30 exact fit + 25 new topic
            assert 155 <= scored.score <= 175
