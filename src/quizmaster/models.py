"""Records shared by the quiz client, the stats aggregator and the API.

Every record serializes to the camelCase mapping used on the wire and in the
persisted stats document; Python attributes stay snake_case.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

__all__ = [
    "round_half_up",
    "percent",
    "TIMEOUT",
    "OPTION_COUNT",
    "Answer",
    "QuestionFormatError",
    "Question",
    "Topic",
    "TOPICS",
    "find_topic",
    "QuizAttempt",
    "TopicStats",
    "UserStats",
    "normalize_question",
]

TIMEOUT = "timeout"
OPTION_COUNT = 4

# An option index, the TIMEOUT sentinel, or None while unanswered.
Answer = Union[int, str, None]


def round_half_up(value: float) -> int:
    """Round halves upwards (``2.5 -> 3``) instead of to the even neighbour."""

    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


class QuestionFormatError(ValueError):
    """Raised when a question payload does not have the expected shape."""


@dataclass(frozen=True)
class Question:
    """A multiple-choice question with exactly four options."""

    text: str
    options: tuple[str, ...]
    correct_answer: int

    @property
    def correct_option(self) -> Optional[str]:
        if 0 <= self.correct_answer < len(self.options):
            return self.options[self.correct_answer]
        return None

    def is_correct(self, answer: Answer) -> bool:
        if answer is None or answer == TIMEOUT or isinstance(answer, bool):
            return False
        return answer == self.correct_answer

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
        }


def normalize_question(payload: Any) -> Question:
    """Validate one raw question mapping and return a :class:`Question`.

    Options beyond the fourth are dropped. The correct-answer index is taken
    as given: it must be an integer, but its range is not checked.
    """

    if not isinstance(payload, Mapping):
        raise QuestionFormatError("question must be an object")
    text = payload.get("text")
    if not isinstance(text, str) or not text.strip():
        raise QuestionFormatError("question text must be a non-empty string")
    options = payload.get("options")
    if not isinstance(options, list):
        raise QuestionFormatError("options must be a list")
    if len(options) < OPTION_COUNT:
        raise QuestionFormatError(
            f"expected {OPTION_COUNT} options, got {len(options)}"
        )
    options = options[:OPTION_COUNT]
    if not all(isinstance(option, str) for option in options):
        raise QuestionFormatError("options must be strings")
    correct = payload.get("correctAnswer")
    if isinstance(correct, bool) or not isinstance(correct, int):
        raise QuestionFormatError("correctAnswer must be an integer index")
    return Question(
        text=text.strip(),
        options=tuple(options),
        correct_answer=correct,
    )


@dataclass(frozen=True)
class Topic:
    id: str
    name: str
    emoji: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "emoji": self.emoji}


TOPICS: tuple[Topic, ...] = (
    Topic("science", "Science", "🔬"),
    Topic("history", "History", "🏛️"),
    Topic("sports", "Sports", "⚽"),
    Topic("technology", "Technology", "💻"),
    Topic("movies", "Movies", "🎬"),
    Topic("geography", "Geography", "🌍"),
)


def find_topic(topic_id: str) -> Optional[Topic]:
    wanted = topic_id.strip().lower()
    for topic in TOPICS:
        if topic.id == wanted:
            return topic
    return None


@dataclass(frozen=True)
class QuizAttempt:
    """One completed, scored and timed pass through a question set."""

    id: str
    topic_id: str
    topic_name: str
    date: str
    score: int
    total_questions: int
    time_spent: int

    @property
    def percentage(self) -> int:
        return percent(self.score, self.total_questions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topicId": self.topic_id,
            "topicName": self.topic_name,
            "date": self.date,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "timeSpent": self.time_spent,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuizAttempt":
        return cls(
            id=str(payload["id"]),
            topic_id=str(payload["topicId"]),
            topic_name=str(payload["topicName"]),
            date=str(payload["date"]),
            score=int(payload["score"]),
            total_questions=int(payload["totalQuestions"]),
            time_spent=int(payload["timeSpent"]),
        )


@dataclass(frozen=True)
class TopicStats:
    """Running metrics for one topic, derived from recorded attempts."""

    topic_id: str
    total_attempts: int = 0
    best_score: int = 0
    average_score: int = 0
    total_questions_answered: int = 0
    correct_answers: int = 0
    average_time_per_question: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "topicId": self.topic_id,
            "totalAttempts": self.total_attempts,
            "bestScore": self.best_score,
            "averageScore": self.average_score,
            "totalQuestionsAnswered": self.total_questions_answered,
            "correctAnswers": self.correct_answers,
            "averageTimePerQuestion": self.average_time_per_question,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TopicStats":
        return cls(
            topic_id=str(payload["topicId"]),
            total_attempts=int(payload.get("totalAttempts", 0)),
            best_score=int(payload.get("bestScore", 0)),
            average_score=int(payload.get("averageScore", 0)),
            total_questions_answered=int(
                payload.get("totalQuestionsAnswered", 0)
            ),
            correct_answers=int(payload.get("correctAnswers", 0)),
            average_time_per_question=int(
                payload.get("averageTimePerQuestion", 0)
            ),
        )


@dataclass
class UserStats:
    """Aggregate root for all persisted statistics."""

    quiz_attempts: list[QuizAttempt] = field(default_factory=list)
    topic_stats: dict[str, TopicStats] = field(default_factory=dict)
    total_quizzes_taken: int = 0
    total_questions_answered: int = 0
    overall_accuracy: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "quizAttempts": [attempt.to_dict() for attempt in self.quiz_attempts],
            "topicStats": {
                topic_id: stats.to_dict()
                for topic_id, stats in self.topic_stats.items()
            },
            "totalQuizzesTaken": self.total_quizzes_taken,
            "totalQuestionsAnswered": self.total_questions_answered,
            "overallAccuracy": self.overall_accuracy,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UserStats":
        attempts = payload.get("quizAttempts", [])
        topics = payload.get("topicStats", {})
        if not isinstance(attempts, list) or not isinstance(topics, Mapping):
            raise ValueError("stats document has an unexpected shape")
        return cls(
            quiz_attempts=[QuizAttempt.from_dict(item) for item in attempts],
            topic_stats={
                str(key): TopicStats.from_dict(value)
                for key, value in topics.items()
            },
            total_quizzes_taken=int(payload.get("totalQuizzesTaken", 0)),
            total_questions_answered=int(
                payload.get("totalQuestionsAnswered", 0)
            ),
            overall_accuracy=int(payload.get("overallAccuracy", 0)),
        )
