"""Client-side question providers.

Both providers honour the same contract: return exactly ``count`` validated
questions or raise :class:`QuestionFetchError`. Partial results are never
returned.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, Sequence

import httpx

from .generator import GenerationError
from .models import Question, QuestionFormatError, normalize_question

__all__ = [
    "MIN_COUNT",
    "MAX_COUNT",
    "DEFAULT_COUNT",
    "QUESTIONS_PATH",
    "QuestionFetchError",
    "QuestionSource",
    "HttpQuestionProvider",
    "DirectQuestionProvider",
    "validate_count",
]

MIN_COUNT = 1
MAX_COUNT = 10
DEFAULT_COUNT = 5
QUESTIONS_PATH = "/api/quiz/questions"


class QuestionFetchError(RuntimeError):
    """Raised when questions could not be loaded for any reason."""


class QuestionSource(Protocol):
    def fetch(self, topic: str, count: int = DEFAULT_COUNT) -> list[Question]:
        ...


def validate_count(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError("count must be an integer")
    if not MIN_COUNT <= count <= MAX_COUNT:
        raise ValueError(f"count must be between {MIN_COUNT} and {MAX_COUNT}")
    return count


def _exactly(
    questions: Sequence[Question], count: int, *, topic: str
) -> list[Question]:
    if len(questions) != count:
        raise QuestionFetchError(
            f"Expected {count} question(s) for '{topic}', "
            f"received {len(questions)}"
        )
    return list(questions)


class HttpQuestionProvider:
    """Fetch questions from the quizmaster HTTP API."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + QUESTIONS_PATH
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = logger or logging.getLogger(__name__)

    def fetch(self, topic: str, count: int = DEFAULT_COUNT) -> list[Question]:
        try:
            validate_count(count)
        except ValueError as exc:
            raise QuestionFetchError(str(exc)) from exc
        self._logger.debug(
            "Requesting questions",
            extra={"url": self._url, "topic": topic, "count": count},
        )
        try:
            response = self._client.post(
                self._url, json={"topic": topic, "count": count}
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise QuestionFetchError(
                f"Question service answered {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise QuestionFetchError(
                f"Could not reach question service: {exc}"
            ) from exc
        except ValueError as exc:
            raise QuestionFetchError(
                "Question service returned invalid JSON"
            ) from exc

        questions = self._parse_body(body)
        self._logger.info(
            "Received questions",
            extra={"topic": topic, "count": len(questions)},
        )
        return _exactly(questions, count, topic=topic)

    def close(self) -> None:
        self._client.close()

    def _parse_body(self, body: Any) -> list[Question]:
        if not isinstance(body, dict):
            raise QuestionFetchError("Response body must be an object")
        raw = body.get("questions")
        if not isinstance(raw, list):
            raise QuestionFetchError("Response is missing the questions array")
        try:
            return [normalize_question(item) for item in raw]
        except QuestionFormatError as exc:
            raise QuestionFetchError(f"Malformed question: {exc}") from exc


class DirectQuestionProvider:
    """Call a question generator in-process instead of over HTTP."""

    def __init__(
        self,
        generate: Callable[[str, int], Sequence[Question]],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._generate = generate
        self._logger = logger or logging.getLogger(__name__)

    def fetch(self, topic: str, count: int = DEFAULT_COUNT) -> list[Question]:
        try:
            validate_count(count)
            questions = self._generate(topic, count)
        except (GenerationError, ValueError) as exc:
            self._logger.warning(
                "Question generation failed",
                extra={"topic": topic, "error": str(exc)},
            )
            raise QuestionFetchError(str(exc)) from exc
        return _exactly(questions, count, topic=topic)
