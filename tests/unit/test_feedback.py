"""
Unit tests for the feedback hand-off (events, clients, fallback, queue).

HTTP calls go through httpx.MockTransport; nothing leaves the process.
"""

import json
import threading
import time

import httpx
import pytest

from config import Settings
from mentor_core.core.errors import FeedbackFormatError
from mentor_core.core.taxonomy import ErrorCategory
from mentor_core.diagnosis import Classification, TestAnalysis
from mentor_core.feedback import (
    ClassificationEvent,
    FeedbackQueue,
    FeedbackWorker,
    HttpFeedbackClient,
    MentorFeedback,
    MentorFeedbackGenerator,
    NullFeedbackClient,
    build_feedback_client,
    fallback_feedback,
)

ENDPOINT = "http://feedback.test/v1/feedback"


def make_event(category=ErrorCategory.OFF_BY_ONE, tests_passed=2, attempt_id="a-1"):
    return ClassificationEvent(
        user_id="learner-1",
        attempt_id=attempt_id,
        question_id="q-1",
        category=category,
        severity=2,
        key_signals=["off-by-one: expected 5, got 4"],
        suggested_focus="Check loop boundaries and array indices",
        tests_passed=tests_passed,
        tests_total=3,
    )


GENERATED = {
    "error_category": "OFF_BY_ONE",
    "short_diagnosis": "Your loop stops one step early.",
    "reasoning_hint": "Compare the last index you visit with the array length.",
    "guiding_questions": ["Which index does the loop end on?"],
    "progressive_hints": ["Look at the loop condition"],
    "next_actions": ["Trace the loop for a 3-element array"],
    "confidence": 80,
}


class TestEvents:
    def test_from_classification(self):
        classification = Classification(
            category=ErrorCategory.LOGIC,
            severity=4,
            key_signals=["a", "b"],
            test_analysis=TestAnalysis(total=5, passed=1, failed=4),
        )

        event = ClassificationEvent.from_classification(
            classification, "learner-1", "a-9", "q-3", mistake_log_id="m-1"
        )

        assert event.category == ErrorCategory.LOGIC
        assert event.tests_passed == 1
        assert event.tests_total == 5
        assert event.mistake_log_id == "m-1"

    def test_json_dump_uses_enum_values(self):
        data = make_event().model_dump(mode="json")
        assert data["category"] == "OFF_BY_ONE"


class TestFallback:
    def test_complete_feedback_for_every_category(self):
        for category in ErrorCategory:
            feedback = fallback_feedback(make_event(category=category))

            assert feedback.source == "fallback"
            assert feedback.error_category == category
            assert feedback.short_diagnosis
            assert len(feedback.progressive_hints) == 3
            assert feedback.next_actions

    def test_progress_hint_mentions_passed_tests(self):
        hints = fallback_feedback(make_event(tests_passed=2)).progressive_hints
        assert hints[2].startswith("You've passed 2 tests")

        hints = fallback_feedback(make_event(tests_passed=0)).progressive_hints
        assert hints[2].startswith("Start by making sure")


class TestHttpClient:
    def test_posts_event_and_parses_feedback(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=GENERATED)

        with HttpFeedbackClient(ENDPOINT, api_key="secret", transport=httpx.MockTransport(handler)) as client:
            feedback = client.generate(make_event())

        assert feedback.source == "generator"
        assert feedback.confidence == 80
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["attempt_id"] == "a-1"
        assert seen["body"]["category"] == "OFF_BY_ONE"

    def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        client = HttpFeedbackClient(ENDPOINT, transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            client.generate(make_event())

    def test_empty_body_defers_to_fallback(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        assert HttpFeedbackClient(ENDPOINT, transport=transport).generate(make_event()) is None


class TestGenerator:
    def test_no_client_uses_fallback(self):
        feedback = MentorFeedbackGenerator().generate(make_event())
        assert feedback.source == "fallback"

    def test_unavailable_generator_falls_back(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        generator = MentorFeedbackGenerator(HttpFeedbackClient(ENDPOINT, transport=transport))

        feedback = generator.generate(make_event())

        assert feedback.source == "fallback"
        assert feedback.error_category == ErrorCategory.OFF_BY_ONE

    def test_malformed_feedback_falls_back(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"short_diagnosis": "missing fields"})
        )
        generator = MentorFeedbackGenerator(HttpFeedbackClient(ENDPOINT, transport=transport))

        assert generator.generate(make_event()).source == "fallback"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>oops</html>"),
            httpx.Response(200, json=["not", "an", "object"]),
            httpx.Response(200, json="just a string"),
        ],
    )
    def test_non_object_body_falls_back(self, response):
        transport = httpx.MockTransport(lambda request: response)
        generator = MentorFeedbackGenerator(HttpFeedbackClient(ENDPOINT, transport=transport))

        assert generator.generate(make_event()).source == "fallback"

    def test_non_json_body_is_a_format_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="oops"))

        with pytest.raises(FeedbackFormatError):
            HttpFeedbackClient(ENDPOINT, transport=transport).generate(make_event())

    def test_generated_feedback_passes_through(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=GENERATED))
        generator = MentorFeedbackGenerator(HttpFeedbackClient(ENDPOINT, transport=transport))

        feedback = generator.generate(make_event())

        assert feedback.source == "generator"
        assert feedback.short_diagnosis == GENERATED["short_diagnosis"]

    def test_client_chosen_from_settings(self):
        assert isinstance(build_feedback_client(Settings(feedback_endpoint_url=None)), NullFeedbackClient)
        client = build_feedback_client(Settings(feedback_endpoint_url=ENDPOINT, feedback_api_key="k"))
        assert isinstance(client, HttpFeedbackClient)
        assert client.api_key == "k"


class ExplodingGenerator:
    def generate(self, event):
        raise RuntimeError("generator crashed")


class TestQueue:
    def test_publish_never_blocks_when_full(self):
        queue = FeedbackQueue(maxsize=1)

        assert queue.publish(make_event(attempt_id="a-1")) is True
        assert queue.publish(make_event(attempt_id="a-2")) is False
        assert queue.dropped == 1
        assert len(queue) == 1

    def test_worker_drains_with_fallback(self):
        queue = FeedbackQueue()
        delivered = []
        worker = FeedbackWorker(queue, MentorFeedbackGenerator(), sink=lambda e, f: delivered.append((e, f)))
        for i in range(3):
            queue.publish(make_event(attempt_id=f"a-{i}"))

        assert worker.drain() == 3
        assert [e.attempt_id for e, _ in delivered] == ["a-0", "a-1", "a-2"]
        assert all(isinstance(f, MentorFeedback) for _, f in delivered)
        assert len(queue) == 0

    def test_worker_survives_generator_failure(self):
        queue = FeedbackQueue()
        worker = FeedbackWorker(queue, ExplodingGenerator())
        queue.publish(make_event(attempt_id="a-1"))
        queue.publish(make_event(attempt_id="a-2"))

        assert worker.drain() == 0
        assert worker.failed == 2
        assert len(queue) == 0

    def test_serve_until_stopped(self):
        queue = FeedbackQueue()
        worker = FeedbackWorker(queue, MentorFeedbackGenerator())
        stop = threading.Event()
        thread = threading.Thread(target=worker.serve, args=(stop, 0.01))
        thread.start()

        queue.publish(make_event())
        deadline = time.monotonic() + 2
        while worker.processed < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        stop.set()
        thread.join(timeout=2)

        assert worker.processed == 1
        assert not thread.is_alive()
