"""Rich-powered terminal front end for the quiz controller.

The loop renders the controller's current page, reads one command, and
applies it. Wall-clock time measured between prompts is fed to the
controller before the command, so a countdown that expired while the player
was thinking resolves first; a command typed for a question that has since
timed out is discarded.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .controller import Page, QuizController, QuizOutcome
from .models import TIMEOUT, TOPICS, Answer, Question, find_topic
from .stats import StatsAggregator, performance_level, rank_topics

InputProvider = Callable[[], str]
ExitAction = Literal["quit", "interrupted"]
CommandType = Literal[
    "select", "topic", "next", "prev", "retry", "new", "back", "quit"
]

OPTION_KEYS = "ABCD"


@dataclass(frozen=True)
class SessionCommand:
    """Normalized command parsed from console input."""

    type: CommandType
    value: Optional[str] = None


@dataclass
class SessionReport:
    """Return value from :func:`run_quiz_session`."""

    outcomes: list[QuizOutcome] = field(default_factory=list)
    exit_action: ExitAction = "quit"


def parse_session_command(
    raw: Optional[str], page: Page
) -> Optional[SessionCommand]:
    """Interpret ``raw`` input in the context of ``page``."""

    if raw is None:
        return None
    text = raw.strip().lower()
    if not text:
        return None
    if text in {"q", "quit", "exit"}:
        return SessionCommand("quit")

    if page is Page.TOPIC_SELECTION:
        if text.isdigit() and 1 <= int(text) <= len(TOPICS):
            return SessionCommand("topic", TOPICS[int(text) - 1].id)
        topic = find_topic(text)
        return SessionCommand("topic", topic.id) if topic else None
    if page is Page.ERROR:
        if text in {"r", "retry"}:
            return SessionCommand("retry")
        if text in {"b", "back"}:
            return SessionCommand("back")
        return None
    if page is Page.QUIZ_QUESTIONS:
        if text in {"n", "next"}:
            return SessionCommand("next")
        if text in {"p", "prev", "previous"}:
            return SessionCommand("prev")
        if len(text) == 1 and text.upper() in OPTION_KEYS:
            return SessionCommand("select", str(OPTION_KEYS.index(text.upper())))
        if text.isdigit() and 1 <= int(text) <= len(OPTION_KEYS):
            return SessionCommand("select", str(int(text) - 1))
        return None
    if page is Page.QUIZ_RESULTS:
        if text in {"r", "retry"}:
            return SessionCommand("retry")
        if text in {"n", "new"}:
            return SessionCommand("new")
        return None
    return None


def feedback_text(question: Question, answer: Answer) -> str:
    if answer is None:
        return ""
    if question.is_correct(answer):
        return "Correct! Well done."
    return (
        "Incorrect. The correct answer is "
        f"{question.correct_option or 'unavailable'}."
    )


def format_time(seconds: int) -> str:
    return f"{seconds // 60}m {seconds % 60}s"


def run_quiz_session(
    controller: QuizController,
    console: Console,
    input_provider: InputProvider,
    *,
    clock: Callable[[], float] = time.monotonic,
    initial_topic: Optional[str] = None,
) -> SessionReport:
    """Drive ``controller`` until the player quits."""

    report = SessionReport()
    if initial_topic:
        topic = find_topic(initial_topic)
        if topic is None:
            console.print(f"[red]Unknown topic '{initial_topic}'.[/]")
        else:
            _load_topic(controller, console, topic.id)

    last_tick = clock()
    while True:
        _render_page(console, controller)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            report.exit_action = "interrupted"
            break

        now = clock()
        if controller.page is Page.QUIZ_QUESTIONS:
            before = (controller.index, controller.current_answer)
            controller.elapse(now - last_tick)
            _collect_outcome(controller, report)
            still_same = (
                controller.page is Page.QUIZ_QUESTIONS
                and (controller.index, controller.current_answer) == before
            )
            if not still_same:
                index, answer = before
                if answer is None and controller.answers[index] == TIMEOUT:
                    console.print(
                        "[bold red]Time's up![/] You ran out of time for "
                        "this question."
                    )
                else:
                    console.print("[dim]Moved on to the next question.[/]")
                last_tick = now
                continue
        last_tick = now

        command = parse_session_command(raw, controller.page)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Goodbye![/]")
            report.exit_action = "quit"
            break
        _apply_command(command, controller, console)
        _collect_outcome(controller, report)
        last_tick = clock()

    return report


def _collect_outcome(controller: QuizController, report: SessionReport) -> None:
    outcome = controller.outcome
    if outcome is None:
        return
    if not report.outcomes or report.outcomes[-1] is not outcome:
        report.outcomes.append(outcome)


def _load_topic(
    controller: QuizController, console: Console, topic_id: str
) -> None:
    topic = find_topic(topic_id)
    if topic is None:
        return
    console.print(f"[dim]Generating {topic.name} questions...[/]")
    controller.select_topic(topic)


def _apply_command(
    command: SessionCommand,
    controller: QuizController,
    console: Console,
) -> None:
    page = controller.page
    if command.type == "topic" and command.value:
        _load_topic(controller, console, command.value)
    elif command.type == "select" and command.value is not None:
        if not controller.record_answer(int(command.value)):
            console.print(
                "[yellow]This question is already answered.[/]"
                if controller.current_answer is not None
                else "[red]That is not a valid choice.[/]"
            )
    elif command.type == "next":
        controller.next_question()
    elif command.type == "prev":
        controller.previous_question()
    elif command.type == "retry" and page is Page.ERROR:
        if controller.topic is not None:
            console.print(
                f"[dim]Generating {controller.topic.name} questions...[/]"
            )
        controller.retry()
    elif command.type == "retry" and page is Page.QUIZ_RESULTS:
        controller.retry_quiz()
    elif command.type in {"new", "back"}:
        controller.new_quiz()


def _render_page(console: Console, controller: QuizController) -> None:
    page = controller.page
    if page is Page.TOPIC_SELECTION:
        _render_topics(console)
    elif page is Page.ERROR:
        _render_error(console, controller)
    elif page is Page.QUIZ_QUESTIONS:
        _render_question(console, controller)
    elif page is Page.QUIZ_RESULTS and controller.outcome is not None:
        _render_results(console, controller.outcome)


def _render_topics(console: Console) -> None:
    console.print()
    console.rule(Text("Choose a topic to start your quiz", style="bold cyan"))
    table = Table(show_header=False, box=box.SIMPLE)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Topic")
    for number, topic in enumerate(TOPICS, start=1):
        table.add_row(str(number), f"{topic.emoji} {topic.name}")
    console.print(table)
    console.print(Text("Pick a number or topic name, q to quit", style="dim"))


def _render_error(console: Console, controller: QuizController) -> None:
    body = Text("We couldn't load your quiz. Please try again.")
    if controller.last_error:
        body.append("\n" + controller.last_error, style="dim")
    console.print(Panel(body, title="Error", border_style="red"))
    console.print(Text("r (retry), b (back to topics), q (quit)", style="dim"))


def _render_question(console: Console, controller: QuizController) -> None:
    question = controller.current_question
    answer = controller.current_answer
    topic_name = controller.topic.name if controller.topic else "Quiz"
    header = Text.assemble(
        (f"{topic_name} Quiz", "bold cyan"),
        (
            f"  Question {controller.index + 1} of "
            f"{controller.total_questions}",
            "dim",
        ),
    )
    console.print()
    console.rule(header)
    if answer is None:
        console.print(Text(f"Time left: {controller.time_left}s", style="yellow"))
    console.print(Text(question.text, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Option")
    for idx, option in enumerate(question.options):
        row = Text(option)
        if answer is not None and idx == question.correct_answer:
            row.stylize("bold green")
        elif answer == idx:
            row.stylize("bold red")
        table.add_row(OPTION_KEYS[idx], row)
    console.print(table)

    if answer == TIMEOUT:
        console.print(Text("Time's up!", style="bold red"))
    if answer is not None:
        style = "green" if question.is_correct(answer) else "red"
        console.print(Text(feedback_text(question, answer), style=style))
    hint = "n (finish)" if controller.is_last_question else "n (next)"
    console.print(
        Text(
            f"Answered {controller.answered_count()}/"
            f"{controller.total_questions} | Commands: A-D, {hint}, "
            "p (prev), q (quit)",
            style="dim",
        )
    )


def _render_results(console: Console, outcome: QuizOutcome) -> None:
    console.print()
    console.rule(Text("Quiz Completed!", style="bold magenta"))
    summary = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Score", f"{outcome.score}/{outcome.total_questions}")
    summary.add_row("Correct", f"{outcome.percentage}%")
    summary.add_row("Time", format_time(outcome.time_spent))
    console.print(summary)
    console.print(Text(outcome.message, style="bold"))
    console.print(
        Text("r (retry this quiz), n (new quiz), q (quit)", style="dim")
    )


def _accuracy_style(percentage: float) -> str:
    if percentage >= 80:
        return "green"
    if percentage >= 60:
        return "blue"
    if percentage >= 40:
        return "yellow"
    return "red"


def _topic_label(topic_id: str) -> str:
    topic = find_topic(topic_id)
    return f"{topic.emoji} {topic.name}" if topic else topic_id


def render_stats(
    console: Console, aggregator: StatsAggregator, *, recent: int = 5
) -> None:
    """Print the statistics dashboard."""

    stats = aggregator.get_stats()
    console.print()
    console.rule(Text("Your Stats", style="bold magenta"))
    if not stats.quiz_attempts and not stats.topic_stats:
        console.print(
            Panel(
                "No quizzes taken yet. Play one to start tracking progress.",
                border_style="yellow",
            )
        )
        return

    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Quizzes taken", str(stats.total_quizzes_taken))
    overview.add_row("Questions answered", str(stats.total_questions_answered))
    overview.add_row(
        "Overall accuracy",
        Text(
            f"{stats.overall_accuracy}% "
            f"({performance_level(stats.overall_accuracy)})",
            style=_accuracy_style(stats.overall_accuracy),
        ),
    )
    overview.add_row("Topics explored", str(len(stats.topic_stats)))
    console.print(overview)

    for title, ranked in (
        ("Best topics", rank_topics(stats, 3, descending=True)),
        ("Needs practice", rank_topics(stats, 3, descending=False)),
    ):
        if not ranked:
            continue
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Topic")
        table.add_column("Average", justify="right")
        for item in ranked:
            table.add_row(
                _topic_label(item.topic_id),
                Text(f"{item.score}%", style=_accuracy_style(item.score)),
            )
        console.print(table)

    attempts = stats.quiz_attempts[: max(0, recent)]
    if attempts:
        history = Table(title="Recent quizzes", box=box.SIMPLE, expand=True)
        history.add_column("Date")
        history.add_column("Topic")
        history.add_column("Score", justify="right")
        history.add_column("Time", justify="right")
        for attempt in attempts:
            history.add_row(
                attempt.date[:16].replace("T", " "),
                _topic_label(attempt.topic_id),
                Text(
                    f"{attempt.score}/{attempt.total_questions}",
                    style=_accuracy_style(attempt.percentage),
                ),
                format_time(attempt.time_spent),
            )
        console.print(history)

    per_topic = Table(title="Per topic", box=box.SIMPLE, expand=True)
    per_topic.add_column("Topic")
    per_topic.add_column("Attempts", justify="right")
    per_topic.add_column("Best", justify="right")
    per_topic.add_column("Average", justify="right")
    per_topic.add_column("Correct", justify="right")
    per_topic.add_column("Sec/question", justify="right")
    for topic_id, topic_stats in stats.topic_stats.items():
        per_topic.add_row(
            _topic_label(topic_id),
            str(topic_stats.total_attempts),
            f"{topic_stats.best_score}%",
            Text(
                f"{topic_stats.average_score}%",
                style=_accuracy_style(topic_stats.average_score),
            ),
            f"{topic_stats.correct_answers}/"
            f"{topic_stats.total_questions_answered}",
            str(topic_stats.average_time_per_question),
        )
    console.print(per_topic)
