from __future__ import annotations

import json
from itertools import count

import pytest

from quizmaster import stats as stats_mod
from quizmaster.stats import (
    MAX_ATTEMPTS,
    JsonFileStatsStore,
    MemoryStatsStore,
    StatsAggregator,
    StatsStoreError,
    TopicScore,
    performance_level,
    rank_topics,
)


def make_aggregator(store=None, **kwargs) -> StatsAggregator:
    ids = count(1)
    return StatsAggregator(
        store or MemoryStatsStore(),
        id_factory=lambda: f"attempt-{next(ids)}",
        now=lambda: "2024-05-01T12:00:00+00:00",
        **kwargs,
    )


def test_empty_store_yields_empty_stats():
    stats = make_aggregator().get_stats()

    assert stats.quiz_attempts == []
    assert stats.topic_stats == {}
    assert stats.total_quizzes_taken == 0
    assert stats.overall_accuracy == 0


def test_record_attempt_builds_history():
    aggregator = make_aggregator()

    aggregator.record_attempt("history", "History", 3, 5, 40)
    stats = aggregator.record_attempt("history", "History", 4, 5, 60)

    assert stats.total_quizzes_taken == 2
    assert stats.total_questions_answered == 10
    assert stats.overall_accuracy == 70
    assert [a.id for a in stats.quiz_attempts] == ["attempt-2", "attempt-1"]

    topic = aggregator.get_topic_stats("history")
    assert topic.total_attempts == 2
    assert topic.best_score == 80
    assert topic.average_score == 70
    assert topic.correct_answers == 7
    assert topic.total_questions_answered == 10
    assert topic.average_time_per_question == 10


def test_best_score_never_decreases():
    aggregator = make_aggregator()

    aggregator.record_attempt("science", "Science", 5, 5, 10)
    aggregator.record_attempt("science", "Science", 1, 5, 10)

    assert aggregator.get_topic_stats("science").best_score == 100


def test_history_is_capped_at_max_attempts():
    aggregator = make_aggregator()

    for _ in range(MAX_ATTEMPTS + 5):
        stats = aggregator.record_attempt("sports", "Sports", 1, 2, 5)

    assert len(stats.quiz_attempts) == MAX_ATTEMPTS
    assert stats.quiz_attempts[0].id == f"attempt-{MAX_ATTEMPTS + 5}"
    assert stats.total_quizzes_taken == MAX_ATTEMPTS + 5
    assert stats.topic_stats["sports"].total_attempts == MAX_ATTEMPTS + 5
    assert 0 <= stats.overall_accuracy <= 100


def test_custom_cap_and_accuracy_over_retained_attempts():
    aggregator = make_aggregator(max_attempts=1)

    aggregator.record_attempt("movies", "Movies", 4, 4, 10)
    stats = aggregator.record_attempt("movies", "Movies", 0, 4, 10)

    # Only the newest attempt is retained; counters keep the evicted one.
    assert len(stats.quiz_attempts) == 1
    assert stats.total_questions_answered == 8
    assert stats.overall_accuracy == 0


def test_rankings_exclude_unattempted_and_order_by_average():
    aggregator = make_aggregator()
    aggregator.record_attempt("science", "Science", 5, 5, 10)
    aggregator.record_attempt("history", "History", 1, 5, 10)
    aggregator.record_attempt("sports", "Sports", 3, 5, 10)

    assert aggregator.best_topics(2) == [
        TopicScore("science", 100),
        TopicScore("sports", 60),
    ]
    assert aggregator.weakest_topics(1) == [TopicScore("history", 20)]
    assert len(aggregator.recent_attempts(2)) == 2
    assert aggregator.recent_attempts(0) == []


def test_clear_resets_everything():
    aggregator = make_aggregator()
    aggregator.record_attempt("science", "Science", 5, 5, 10)

    aggregator.clear()

    assert aggregator.get_stats().quiz_attempts == []


@pytest.mark.parametrize(
    ("percentage", "label"),
    [
        (95, "Excellent"),
        (90, "Excellent"),
        (85, "Great"),
        (70, "Good"),
        (65, "Satisfactory"),
        (50, "Fair"),
        (10, "Needs Improvement"),
    ],
)
def test_performance_level(percentage, label):
    assert performance_level(percentage) == label


def test_json_file_store_persists_across_instances(tmp_path):
    first = make_aggregator(JsonFileStatsStore(tmp_path, key="stats"))
    first.record_attempt("geography", "Geography", 2, 4, 30)

    path = tmp_path / "stats.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["topicStats"]["geography"]["averageScore"] == 50
    assert document["quizAttempts"][0]["topicName"] == "Geography"

    second = make_aggregator(JsonFileStatsStore(tmp_path, key="stats"))
    assert second.get_stats().total_quizzes_taken == 1


def test_corrupted_file_is_treated_as_empty(tmp_path):
    store = JsonFileStatsStore(tmp_path)
    store.path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StatsStoreError):
        store.load()

    aggregator = make_aggregator(store)
    assert aggregator.get_stats().total_quizzes_taken == 0

    stats = aggregator.record_attempt("science", "Science", 1, 1, 3)
    assert stats.total_quizzes_taken == 1
    assert json.loads(store.path.read_text(encoding="utf-8"))[
        "totalQuizzesTaken"
    ] == 1


def test_undecodable_file_is_treated_as_empty(tmp_path):
    store = JsonFileStatsStore(tmp_path)
    store.path.write_bytes(b'{"quizAttempts": "\xff\xfe"}')

    with pytest.raises(StatsStoreError):
        store.load()

    aggregator = make_aggregator(store)
    assert aggregator.get_stats().total_quizzes_taken == 0
    assert aggregator.record_attempt(
        "science", "Science", 1, 1, 3
    ).total_quizzes_taken == 1


def test_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    store = JsonFileStatsStore(tmp_path)

    def broken_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr(stats_mod.os, "replace", broken_replace)

    with pytest.raises(StatsStoreError):
        store.save({"quizAttempts": []})

    assert list(tmp_path.iterdir()) == []


def test_rank_topics_reads_one_snapshot():
    aggregator = make_aggregator()
    aggregator.record_attempt("science", "Science", 5, 5, 10)
    aggregator.record_attempt("history", "History", 1, 5, 10)
    snapshot = aggregator.get_stats()

    assert rank_topics(snapshot, 1) == [TopicScore("science", 100)]
    assert rank_topics(snapshot, 1, descending=False) == [
        TopicScore("history", 20)
    ]
    assert rank_topics(snapshot, 0) == []


def test_malformed_document_is_treated_as_empty():
    store = MemoryStatsStore()
    store.save({"quizAttempts": [{"id": "x"}]})

    assert make_aggregator(store).get_stats().quiz_attempts == []


def test_save_failure_is_swallowed_and_logged():
    class BrokenStore(MemoryStatsStore):
        def save(self, payload):
            raise StatsStoreError("disk full")

    aggregator = make_aggregator(BrokenStore())

    stats = aggregator.record_attempt("science", "Science", 1, 1, 3)

    assert stats.total_quizzes_taken == 1
    assert aggregator.get_stats().total_quizzes_taken == 0


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        StatsAggregator(MemoryStatsStore(), max_attempts=0)
