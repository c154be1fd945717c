"""Quiz flow state machine.

Pages move ``topic-selection -> loading -> quiz-questions | error``, then
``quiz-questions -> quiz-results`` and back to topic selection (new quiz) or
the same questions (retry). The controller renders nothing; the terminal
session reads its attributes and calls its actions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .models import TIMEOUT, Answer, Question, Topic, percent, round_half_up
from .provider import QuestionFetchError, QuestionSource
from .stats import StatsAggregator
from .timer import DEFAULT_SECONDS, CountdownTimer

__all__ = [
    "Page",
    "GRACE_SECONDS",
    "QuizOutcome",
    "QuizController",
    "score_answers",
    "result_message",
]

GRACE_SECONDS = 1.5


class Page(str, Enum):
    TOPIC_SELECTION = "topic-selection"
    LOADING = "loading"
    ERROR = "error"
    QUIZ_QUESTIONS = "quiz-questions"
    QUIZ_RESULTS = "quiz-results"


@dataclass(frozen=True)
class QuizOutcome:
    """Final tally of a completed quiz."""

    topic_id: str
    topic_name: str
    score: int
    total_questions: int
    time_spent: int

    @property
    def percentage(self) -> int:
        return percent(self.score, self.total_questions)

    @property
    def message(self) -> str:
        return result_message(self.percentage)


def score_answers(
    questions: Sequence[Question], answers: Sequence[Answer]
) -> int:
    """Count answers matching the correct index; timeouts never count."""

    return sum(
        1
        for question, answer in zip(questions, answers)
        if question.is_correct(answer)
    )


def result_message(percentage: int) -> str:
    if percentage >= 90:
        return "Excellent! You're a master of this topic!"
    if percentage >= 70:
        return "Great job! You have a solid understanding of this topic."
    if percentage >= 50:
        return "Good effort! You're on the right track."
    return "Keep learning! This topic might need more study."


class QuizController:
    """Own the quiz state and its transitions."""

    def __init__(
        self,
        provider: QuestionSource,
        *,
        stats: Optional[StatsAggregator] = None,
        question_count: int = 5,
        seconds_per_question: int = DEFAULT_SECONDS,
        grace_seconds: float = GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._provider = provider
        self._stats = stats
        self._question_count = question_count
        self._timer = CountdownTimer(seconds_per_question)
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

        self.page = Page.TOPIC_SELECTION
        self.topic: Optional[Topic] = None
        self.questions: list[Question] = []
        self.answers: list[Answer] = []
        self.index = 0
        self.score = 0
        self.time_spent = 0
        self.outcome: Optional[QuizOutcome] = None
        self.last_error: Optional[str] = None
        self._started_at = 0.0
        self._advance_in: Optional[float] = None

    # Read-only views -------------------------------------------------

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.index]

    @property
    def current_answer(self) -> Answer:
        return self.answers[self.index]

    @property
    def is_last_question(self) -> bool:
        return self.index == len(self.questions) - 1

    @property
    def time_left(self) -> int:
        return self._timer.remaining

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    @property
    def auto_advance_pending(self) -> bool:
        return self._advance_in is not None

    def answered_count(self) -> int:
        return sum(1 for answer in self.answers if answer is not None)

    # Transitions -----------------------------------------------------

    def select_topic(self, topic: Topic) -> Page:
        """Fetch questions for ``topic``; land on the quiz or the error page."""

        self.topic = topic
        self.page = Page.LOADING
        self.last_error = None
        self._logger.info(
            "Fetching questions",
            extra={"topic_id": topic.id, "count": self._question_count},
        )
        try:
            questions = self._provider.fetch(topic.id, self._question_count)
            if not questions:
                raise QuestionFetchError("No questions were returned")
        except QuestionFetchError as exc:
            self.last_error = str(exc)
            self.page = Page.ERROR
            self._logger.error(
                "Failed to fetch questions",
                extra={"topic_id": topic.id, "error": str(exc)},
            )
            return self.page
        self.questions = list(questions)
        self._begin_quiz()
        return self.page

    def retry(self) -> Page:
        """Re-issue the request for the current topic from the error page."""

        if self.topic is None:
            self.page = Page.TOPIC_SELECTION
            return self.page
        return self.select_topic(self.topic)

    def back_to_topics(self) -> Page:
        return self.new_quiz()

    def record_answer(self, answer: Answer) -> bool:
        """Lock in ``answer`` for the current question.

        The first answer is final: later calls are no-ops returning
        ``False``, as are values that are neither an option index nor the
        timeout sentinel.
        """

        if self.page is not Page.QUIZ_QUESTIONS:
            return False
        if self.current_answer is not None:
            return False
        if answer != TIMEOUT and not self._is_option_index(answer):
            return False
        self.answers[self.index] = answer
        self._timer.cancel()
        if answer == TIMEOUT:
            self._logger.info(
                "Question timed out", extra={"question_index": self.index}
            )
        return True

    def next_question(self) -> Page:
        if self.page is not Page.QUIZ_QUESTIONS:
            return self.page
        if self.is_last_question:
            self._finish()
        else:
            self.index += 1
            self._enter_question()
        return self.page

    def previous_question(self) -> int:
        if self.page is Page.QUIZ_QUESTIONS and self.index > 0:
            self.index -= 1
            self._enter_question()
        return self.index

    def retry_quiz(self) -> Page:
        """Replay the same questions with every answer cleared."""

        if not self.questions:
            return self.new_quiz()
        self._begin_quiz()
        return self.page

    def new_quiz(self) -> Page:
        self._timer.cancel()
        self._advance_in = None
        self.page = Page.TOPIC_SELECTION
        self.topic = None
        self.questions = []
        self.answers = []
        self.index = 0
        self.score = 0
        self.time_spent = 0
        self.outcome = None
        self.last_error = None
        return self.page

    def elapse(self, seconds: float) -> None:
        """Feed wall time into the countdown and any pending auto-advance.

        A single call may cover a timeout, its grace delay and the following
        question's countdown; each is resolved in order.
        """

        remaining = float(seconds)
        while remaining > 0 and self.page is Page.QUIZ_QUESTIONS:
            if self._advance_in is not None:
                if remaining < self._advance_in:
                    self._advance_in -= remaining
                    return
                remaining -= self._advance_in
                self._advance_in = None
                self.next_question()
                continue
            leftover = self._timer.elapse(remaining)
            if leftover is None:
                return
            self.record_answer(TIMEOUT)
            self._advance_in = self._grace_seconds
            remaining = leftover
            if remaining == 0 and self._grace_seconds <= 0:
                self._advance_in = None
                self.next_question()

    # Internals -------------------------------------------------------

    def _is_option_index(self, answer: Answer) -> bool:
        if isinstance(answer, bool) or not isinstance(answer, int):
            return False
        return 0 <= answer < len(self.current_question.options)

    def _begin_quiz(self) -> None:
        self.answers = [None] * len(self.questions)
        self.index = 0
        self.score = 0
        self.time_spent = 0
        self.outcome = None
        self._started_at = self._clock()
        self.page = Page.QUIZ_QUESTIONS
        self._enter_question()

    def _enter_question(self) -> None:
        self._advance_in = None
        if self.current_answer is None:
            self._timer.start()
        else:
            self._timer.cancel()

    def _finish(self) -> None:
        self._timer.cancel()
        self._advance_in = None
        self.score = score_answers(self.questions, self.answers)
        self.time_spent = max(0, round_half_up(self._clock() - self._started_at))
        topic = self.topic
        self.outcome = QuizOutcome(
            topic_id=topic.id if topic else "",
            topic_name=topic.name if topic else "",
            score=self.score,
            total_questions=len(self.questions),
            time_spent=self.time_spent,
        )
        self.page = Page.QUIZ_RESULTS
        self._logger.info(
            "Quiz completed",
            extra={
                "topic_id": self.outcome.topic_id,
                "score": self.score,
                "total_questions": self.outcome.total_questions,
                "time_spent": self.time_spent,
            },
        )
        if self._stats is not None and topic is not None:
            self._stats.record_attempt(
                topic.id,
                topic.name,
                self.score,
                len(self.questions),
                self.time_spent,
            )
