"""
Classification event hand-off.

The attempt pipeline publishes a ClassificationEvent and moves on; a
separate worker consumes events and calls the feedback generator. The
publisher never waits on the generator, and generator failures never
reach the publisher.
"""
from __future__ import annotations

import queue
import threading
from collections.abc import Callable

from loguru import logger

from mentor_core.feedback.client import MentorFeedbackGenerator
from mentor_core.feedback.events import ClassificationEvent, MentorFeedback

FeedbackSink = Callable[[ClassificationEvent, MentorFeedback], None]


class FeedbackQueue:
    """Bounded, non-blocking event queue."""

    def __init__(self, maxsize: int = 1000):
        self._queue: queue.Queue[ClassificationEvent] = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: ClassificationEvent) -> bool:
        """Enqueue ``event`` without blocking. Returns False when it was dropped."""
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(
                f"Feedback queue full, dropping event for attempt {event.attempt_id} "
                f"({self.dropped} dropped so far)"
            )
            return False
        return True

    def get(self, timeout: float | None = None) -> ClassificationEvent | None:
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def __len__(self) -> int:
        return self._queue.qsize()


def _log_feedback(event: ClassificationEvent, feedback: MentorFeedback) -> None:
    logger.debug(
        f"Feedback for attempt {event.attempt_id} ({feedback.source}): {feedback.short_diagnosis}"
    )


class FeedbackWorker:
    """
    Consumes classification events and produces feedback.

    Any failure of the generator or the sink is logged and the event is
    skipped; the worker keeps going.
    """

    def __init__(
        self,
        events: FeedbackQueue,
        generator: MentorFeedbackGenerator,
        sink: FeedbackSink | None = None,
    ):
        self.events = events
        self.generator = generator
        self.sink = sink or _log_feedback
        self.processed = 0
        self.failed = 0

    def handle(self, event: ClassificationEvent) -> bool:
        try:
            feedback = self.generator.generate(event)
            self.sink(event, feedback)
        except Exception:  # Intentionally broad - a feedback failure must not stop the worker
            self.failed += 1
            logger.exception(f"Feedback generation failed for attempt {event.attempt_id}")
            return False
        self.processed += 1
        return True

    def drain(self) -> int:
        """Handle every queued event. Returns the number handled successfully."""
        handled = 0
        while (event := self.events.get()) is not None:
            try:
                if self.handle(event):
                    handled += 1
            finally:
                self.events.task_done()
        return handled

    def serve(self, stop_event: threading.Event, poll_seconds: float = 0.5) -> None:
        """Handle events until ``stop_event`` is set."""
        logger.info("Feedback worker started")
        while not stop_event.is_set():
            event = self.events.get(timeout=poll_seconds)
            if event is None:
                continue
            try:
                self.handle(event)
            finally:
                self.events.task_done()
        logger.info(f"Feedback worker stopped ({self.processed} processed, {self.failed} failed)")
