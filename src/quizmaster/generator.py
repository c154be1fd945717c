"""Generate quiz questions through an OpenAI-compatible chat API.

The model is asked for a JSON array of ``{text, options[4], correctAnswer}``
objects. Replies are parsed with explicit fallback rules, applied in order:

1. the payload itself is an array;
2. the array sits under a ``questions`` key;
3. the first top-level key holding a non-empty array whose first element
   looks like a question (has ``text`` and ``options``).

Anything else, and any failure talking to the API, is a
:class:`GenerationError`. No retry is attempted.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Optional

from openai import OpenAIError

from .models import Question, QuestionFormatError, normalize_question

__all__ = [
    "DEFAULT_MODEL",
    "GenerationError",
    "QuestionGenerator",
    "build_prompt",
    "extract_question_array",
    "generate_questions",
]

DEFAULT_MODEL = "llama3-70b-8192"

_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


class GenerationError(RuntimeError):
    """Raised when questions cannot be produced for a topic."""


def build_prompt(topic: str, count: int) -> str:
    return (
        f"Generate {count} multiple-choice quiz questions about {topic}.\n"
        "For each question, provide exactly 4 answer options with only one "
        "correct answer.\n\n"
        "Format your response as valid JSON with the following structure:\n"
        '{"questions": [{"text": "Question text goes here?", '
        '"options": ["Option A", "Option B", "Option C", "Option D"], '
        '"correctAnswer": 0}]}\n'
        "where correctAnswer is the 0-based index of the correct option.\n\n"
        "Make sure:\n"
        "1. Questions are accurate and appropriate for the topic\n"
        "2. Questions are diverse and cover different aspects of the topic\n"
        "3. Each question has 4 options, no more, no less\n"
        "4. Only one correct answer per question\n"
        "5. The response is strictly valid JSON with no text outside it\n"
        "6. Correctness is always precisely and objectively determined\n"
        "7. Questions are challenging but not impossibly difficult\n"
    )


def _looks_like_questions(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) > 0
        and isinstance(value[0], dict)
        and "text" in value[0]
        and "options" in value[0]
    )


def extract_question_array(
    content: str, *, logger: Optional[logging.Logger] = None
) -> List[Any]:
    """Locate the raw question array inside the model's reply."""

    log = logger or logging.getLogger(__name__)
    text = (content or "").strip()
    if not text:
        raise GenerationError("Model returned an empty response")
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        log.warning(
            "Model response is not valid JSON",
            extra={"content": content[:500]},
        )
        raise GenerationError("Failed to parse API response") from exc

    if isinstance(data, list):
        log.debug("Parsed questions from a top-level array")
        return data
    if not isinstance(data, dict):
        raise GenerationError("Model response is neither an object nor array")
    if isinstance(data.get("questions"), list):
        log.debug("Parsed questions from the 'questions' key")
        return data["questions"]
    for key, value in data.items():
        if _looks_like_questions(value):
            log.debug(
                "Parsed questions from a fallback key", extra={"key": key}
            )
            return value
    log.warning(
        "No question array found in model response",
        extra={"keys": sorted(str(key) for key in data)},
    )
    raise GenerationError("Could not find questions array in API response")


def _chat_completion_content(
    client: Any,
    *,
    model: str,
    prompt: str,
    temperature: float,
    max_tokens: int,
) -> str:
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
    except OpenAIError as exc:
        raise GenerationError(f"Chat completion request failed: {exc}") from exc
    try:
        content = resp.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise GenerationError("Chat completion returned no choices") from exc
    return (content or "").strip()


def generate_questions(
    topic: str,
    count: int,
    *,
    client: Any,
    model: str = DEFAULT_MODEL,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    logger: Optional[logging.Logger] = None,
) -> List[Question]:
    """Ask the model for ``count`` questions on ``topic``.

    Surplus questions are dropped; too few, or any malformed question, fails
    the whole request.
    """

    log = logger or logging.getLogger(__name__)
    log.info(
        "Generating questions",
        extra={"topic": topic, "count": count, "model": model},
    )
    content = _chat_completion_content(
        client,
        model=model,
        prompt=build_prompt(topic, count),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    raw = extract_question_array(content, logger=log)
    try:
        questions = [normalize_question(item) for item in raw]
    except QuestionFormatError as exc:
        raise GenerationError(f"Model returned a malformed question: {exc}") from exc
    if len(questions) < count:
        raise GenerationError(
            f"Model returned {len(questions)} question(s), expected {count}"
        )
    return questions[:count]


class QuestionGenerator:
    """Callable binding a lazily created client to generation settings."""

    def __init__(
        self,
        client_factory: Callable[[], Any],
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client_factory = client_factory
        self._client: Any = None
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._logger = logger or logging.getLogger(__name__)

    def _ensure_client(self) -> Any:
        if self._client is None:
            try:
                self._client = self._client_factory()
            except RuntimeError as exc:
                raise GenerationError(str(exc)) from exc
        return self._client

    def __call__(self, topic: str, count: int) -> List[Question]:
        return generate_questions(
            topic,
            count,
            client=self._ensure_client(),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            logger=self._logger,
        )
