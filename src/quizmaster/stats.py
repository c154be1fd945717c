"""Persisted quiz statistics.

The aggregate lives in a single document behind a :class:`StatsStore`. The
aggregator reads it, folds a new attempt in, and writes it back in one
``save`` call. Storage failures are logged and treated as an empty store;
they never reach the player.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol

from .models import (
    QuizAttempt,
    TopicStats,
    UserStats,
    percent,
    round_half_up,
)

__all__ = [
    "STATS_KEY",
    "MAX_ATTEMPTS",
    "StatsStoreError",
    "StatsStore",
    "MemoryStatsStore",
    "JsonFileStatsStore",
    "TopicScore",
    "StatsAggregator",
    "performance_level",
    "rank_topics",
]

STATS_KEY = "quizmaster_user_stats"
MAX_ATTEMPTS = 50


class StatsStoreError(RuntimeError):
    """Raised by stores when the document cannot be read or written."""


class StatsStore(Protocol):
    """Key-value blob store holding the whole stats aggregate."""

    def load(self) -> Optional[Mapping[str, Any]]:
        ...

    def save(self, payload: Mapping[str, Any]) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryStatsStore:
    """In-process store; documents are JSON round-tripped like on disk."""

    def __init__(self, key: str = STATS_KEY) -> None:
        self.key = key
        self._documents: dict[str, str] = {}

    def load(self) -> Optional[Mapping[str, Any]]:
        raw = self._documents.get(self.key)
        return json.loads(raw) if raw is not None else None

    def save(self, payload: Mapping[str, Any]) -> None:
        self._documents[self.key] = json.dumps(payload)

    def clear(self) -> None:
        self._documents.pop(self.key, None)


class JsonFileStatsStore:
    """Store the aggregate as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path, key: str = STATS_KEY) -> None:
        self.key = key
        self.path = Path(directory) / f"{key}.json"

    def load(self) -> Optional[Mapping[str, Any]]:
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StatsStoreError(
                f"Failed to parse stats file: {self.path}"
            ) from exc
        except OSError as exc:
            raise StatsStoreError(
                f"Failed to read stats file: {self.path}"
            ) from exc
        if not isinstance(data, dict):
            raise StatsStoreError(
                f"Stats file does not hold an object: {self.path}"
            )
        return data

    def save(self, payload: Mapping[str, Any]) -> None:
        try:
            _atomic_write_json(self.path, payload)
        except OSError as exc:
            raise StatsStoreError(
                f"Failed to write stats file: {self.path}"
            ) from exc

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StatsStoreError(
                f"Failed to remove stats file: {self.path}"
            ) from exc


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        try:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        finally:
            handle.close()
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


@dataclass(frozen=True)
class TopicScore:
    topic_id: str
    score: int


def performance_level(percentage: float) -> str:
    if percentage >= 90:
        return "Excellent"
    if percentage >= 80:
        return "Great"
    if percentage >= 70:
        return "Good"
    if percentage >= 60:
        return "Satisfactory"
    if percentage >= 50:
        return "Fair"
    return "Needs Improvement"


def rank_topics(
    stats: UserStats, limit: int = 3, *, descending: bool = True
) -> list[TopicScore]:
    """Rank attempted topics of one ``stats`` snapshot by average score."""

    attempted = [
        topic
        for topic in stats.topic_stats.values()
        if topic.total_attempts > 0
    ]
    ranked = sorted(
        attempted,
        key=lambda topic: topic.average_score,
        reverse=descending,
    )
    return [
        TopicScore(topic_id=topic.topic_id, score=topic.average_score)
        for topic in ranked[: max(0, limit)]
    ]


def _generate_attempt_id() -> str:
    return uuid.uuid4().hex


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class StatsAggregator:
    """Fold completed quiz attempts into the persisted aggregate."""

    def __init__(
        self,
        store: StatsStore,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        logger: Optional[logging.Logger] = None,
        id_factory: Callable[[], str] = _generate_attempt_id,
        now: Callable[[], str] = _timestamp,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._store = store
        self._max_attempts = max_attempts
        self._logger = logger or logging.getLogger(__name__)
        self._id_factory = id_factory
        self._now = now

    def get_stats(self) -> UserStats:
        try:
            payload = self._store.load()
        except StatsStoreError as exc:
            self._logger.warning(
                "Failed to read stats; using empty stats",
                extra={"error": str(exc)},
            )
            return UserStats()
        if payload is None:
            return UserStats()
        try:
            return UserStats.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            self._logger.warning(
                "Stored stats are malformed; using empty stats",
                extra={"error": repr(exc)},
            )
            return UserStats()

    def record_attempt(
        self,
        topic_id: str,
        topic_name: str,
        score: int,
        total_questions: int,
        time_spent: int,
    ) -> UserStats:
        """Record one attempt and return the updated aggregate.

        ``overall_accuracy`` is recomputed over the retained attempts only,
        while the running counters keep counting evicted attempts. The two
        drift apart once more than ``max_attempts`` quizzes were taken.
        """

        stats = self.get_stats()
        attempt = QuizAttempt(
            id=self._id_factory(),
            topic_id=topic_id,
            topic_name=topic_name,
            date=self._now(),
            score=score,
            total_questions=total_questions,
            time_spent=time_spent,
        )
        stats.quiz_attempts = [attempt, *stats.quiz_attempts][
            : self._max_attempts
        ]
        stats.total_quizzes_taken += 1
        stats.total_questions_answered += total_questions

        retained_correct = sum(item.score for item in stats.quiz_attempts)
        stats.overall_accuracy = percent(
            retained_correct, stats.total_questions_answered
        )

        current = stats.topic_stats.get(topic_id) or TopicStats(topic_id)
        correct_answers = current.correct_answers + score
        questions_answered = current.total_questions_answered + total_questions
        topic_attempts = [
            item for item in stats.quiz_attempts if item.topic_id == topic_id
        ]
        topic_time = sum(item.time_spent for item in topic_attempts)
        topic_questions = sum(item.total_questions for item in topic_attempts)
        stats.topic_stats[topic_id] = replace(
            current,
            total_attempts=current.total_attempts + 1,
            best_score=max(
                current.best_score, percent(score, total_questions)
            ),
            total_questions_answered=questions_answered,
            correct_answers=correct_answers,
            average_score=percent(correct_answers, questions_answered),
            average_time_per_question=(
                round_half_up(topic_time / topic_questions)
                if topic_questions > 0
                else 0
            ),
        )

        self._save(stats)
        self._logger.info(
            "Recorded quiz attempt",
            extra={
                "topic_id": topic_id,
                "score": score,
                "total_questions": total_questions,
                "time_spent": time_spent,
                "overall_accuracy": stats.overall_accuracy,
            },
        )
        return stats

    def get_topic_stats(self, topic_id: str) -> Optional[TopicStats]:
        return self.get_stats().topic_stats.get(topic_id)

    def recent_attempts(self, limit: int = 5) -> list[QuizAttempt]:
        return self.get_stats().quiz_attempts[: max(0, limit)]

    def best_topics(self, limit: int = 3) -> list[TopicScore]:
        return rank_topics(self.get_stats(), limit, descending=True)

    def weakest_topics(self, limit: int = 3) -> list[TopicScore]:
        return rank_topics(self.get_stats(), limit, descending=False)

    def clear(self) -> None:
        try:
            self._store.clear()
        except StatsStoreError as exc:
            self._logger.error(
                "Failed to clear stats", extra={"error": str(exc)}
            )
            return
        self._logger.info("Cleared stats")

    def _save(self, stats: UserStats) -> None:
        try:
            self._store.save(stats.to_dict())
        except StatsStoreError as exc:
            self._logger.error(
                "Failed to save stats", extra={"error": str(exc)}
            )
