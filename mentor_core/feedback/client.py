"""
Feedback generator clients.

The external tutoring generator is an injected dependency:
- NullFeedbackClient: no generator configured, always defers to fallback
- HttpFeedbackClient: posts classification events to an HTTP endpoint

MentorFeedbackGenerator wraps a client and guarantees complete feedback
by falling back to the deterministic templates.

Usage:
    generator = MentorFeedbackGenerator(build_feedback_client(get_settings()))
    feedback = generator.generate(event)
"""
from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import ValidationError

from config import Settings
from mentor_core.core.errors import FeedbackFormatError
from mentor_core.feedback.events import ClassificationEvent, MentorFeedback
from mentor_core.feedback.fallback import fallback_feedback


class FeedbackClient(Protocol):
    def generate(self, event: ClassificationEvent) -> MentorFeedback | None:
        """Feedback for ``event``, or None to use the fallback."""
        ...


class NullFeedbackClient:
    """No-op client for environments without a feedback generator."""

    def generate(self, event: ClassificationEvent) -> MentorFeedback | None:
        return None


class HttpFeedbackClient:
    """
    Synchronous HTTP client for the external feedback generator.

    Raises httpx errors on transport or HTTP failures, FeedbackFormatError
    when the body is not a JSON object and pydantic ValidationError when
    the object is not valid feedback; callers decide how to degrade.
    """

    def __init__(
        self,
        endpoint_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.Client(
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def generate(self, event: ClassificationEvent) -> MentorFeedback | None:
        client = self._ensure_client()
        response = client.post(self.endpoint_url, json=event.model_dump(mode="json"))
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as e:
            raise FeedbackFormatError(f"Feedback response is not JSON: {e}") from e
        if not payload:
            return None
        if not isinstance(payload, dict):
            raise FeedbackFormatError(
                f"Feedback response must be a JSON object, got {type(payload).__name__}"
            )
        return MentorFeedback.model_validate({**payload, "source": "generator"})

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> HttpFeedbackClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def build_feedback_client(settings: Settings) -> FeedbackClient:
    """Pick the client explicitly from configuration."""
    endpoint = settings.feedback_endpoint_url
    if settings.has_feedback_endpoint() and endpoint:
        logger.info(f"Feedback generator: {endpoint}")
        return HttpFeedbackClient(
            endpoint,
            api_key=settings.feedback_api_key,
            timeout=settings.feedback_timeout_seconds,
        )
    logger.info("No feedback generator configured, using fallback feedback")
    return NullFeedbackClient()


class MentorFeedbackGenerator:
    """Client feedback when available, deterministic fallback otherwise."""

    def __init__(self, client: FeedbackClient | None = None):
        self.client: FeedbackClient = client or NullFeedbackClient()

    def generate(self, event: ClassificationEvent) -> MentorFeedback:
        try:
            feedback = self.client.generate(event)
        except httpx.HTTPError as e:
            logger.warning(f"Feedback generator unavailable for {event.attempt_id}: {e}")
            feedback = None
        except (FeedbackFormatError, ValidationError) as e:
            logger.warning(f"Feedback generator returned malformed feedback: {e}")
            feedback = None

        if feedback is None:
            return fallback_feedback(event)
        return feedback
