"""Argparse entry points for the quizmaster subcommands."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .config import (
    CONFIG_FILENAME,
    ConfigError,
    QuizmasterConfig,
    load_config,
    write_template,
)
from .controller import QuizController
from .core import configure_logger, ensure_workspace
from .core.workspace import WorkspaceError, WorkspaceLayout
from .generator import GenerationError
from .models import TOPICS, find_topic
from .provider import (
    DirectQuestionProvider,
    HttpQuestionProvider,
    QuestionSource,
    validate_count,
)
from .server import generator_from_config
from .session import (
    OPTION_KEYS,
    InputProvider,
    render_stats,
    run_quiz_session,
)
from .stats import JsonFileStatsStore, StatsAggregator


def _prepare(
    config_path: Optional[Path],
) -> tuple[QuizmasterConfig, WorkspaceLayout]:
    config = load_config(explicit_path=config_path)
    layout = ensure_workspace(path=config.data_home_override)
    return config, layout


def _logger_for(
    config: QuizmasterConfig, layout: WorkspaceLayout, filename: str
) -> logging.Logger:
    logger, _ = configure_logger(
        "quizmaster",
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose,
        filename=filename,
    )
    return logger


def _aggregator_for(
    config: QuizmasterConfig,
    layout: WorkspaceLayout,
    logger: logging.Logger,
) -> StatsAggregator:
    store = JsonFileStatsStore(
        layout.path_for("stats"), key=config.stats.storage_key
    )
    return StatsAggregator(
        store, max_attempts=config.stats.max_attempts, logger=logger
    )


def _format_created(created: Mapping[str, bool], key: str) -> str:
    return "created" if created.get(key, False) else "exists"


# init ------------------------------------------------------------------


def build_init_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster init",
        description=(
            "Bootstrap the quizmaster workspace and write a config template."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Override the workspace root (defaults to QUIZMASTER_DATA_HOME "
            "or ~/.quizmaster-data)."
        ),
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing quizmaster.toml with a fresh template.",
    )
    return parser


def init_main(argv: Sequence[str] | None = None) -> int:
    args = build_init_parser().parse_args(
        list(argv) if argv is not None else None
    )
    try:
        layout = ensure_workspace(path=args.path)
    except WorkspaceError as exc:
        print(f"Error: {exc}")
        return 2

    lines = [
        f"Workspace ready at {layout.home} "
        f"({_format_created(layout.created, 'home')})"
    ]
    if layout.directories:
        lines.append("Subdirectories:")
        width = max(len(name) for name in layout.directories)
        for name, directory in layout.items():
            status = _format_created(layout.created, name)
            lines.append(f"  {name.ljust(width)}  {directory} ({status})")

    config_path = layout.path_for("config") / CONFIG_FILENAME
    if config_path.exists() and not args.overwrite:
        lines.append(f"Config exists at {config_path} (use --overwrite)")
    else:
        try:
            write_template(config_path, overwrite=args.overwrite)
        except (ConfigError, OSError) as exc:
            print(f"Error: {exc}")
            return 1
        lines.append(f"Wrote config template {config_path}")

    sys.stdout.write("\n".join(lines) + "\n")
    return 0


# play ------------------------------------------------------------------


def build_play_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster play",
        description="Take an interactive quiz in the terminal.",
    )
    parser.add_argument(
        "--topic", help="Start straight away with this topic id"
    )
    parser.add_argument(
        "--count",
        type=int,
        help="Questions per quiz, 1-10 (overrides config)",
    )
    parser.add_argument(
        "--api-url", help="Question API base URL (overrides config)"
    )
    parser.add_argument(
        "--direct",
        action="store_true",
        help="Generate questions in-process instead of calling the API",
    )
    parser.add_argument("--config", type=Path, help="Path to quizmaster.toml")
    return parser


def _build_provider(
    args: argparse.Namespace,
    config: QuizmasterConfig,
    logger: logging.Logger,
) -> QuestionSource:
    if args.direct:
        return DirectQuestionProvider(
            generator_from_config(config, logger=logger), logger=logger
        )
    return HttpQuestionProvider(
        args.api_url or config.quiz.api_url,
        timeout=float(config.quiz.request_timeout_seconds),
        logger=logger,
    )


def play_main(
    argv: Sequence[str] | None = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[InputProvider] = None,
    clock: Optional[Callable[[], float]] = None,
) -> int:
    args = build_play_parser().parse_args(
        list(argv) if argv is not None else None
    )
    if args.topic and find_topic(args.topic) is None:
        known = ", ".join(topic.id for topic in TOPICS)
        print(f"Error: unknown topic '{args.topic}'. Choose one of: {known}")
        return 2
    try:
        config, layout = _prepare(args.config)
        count = validate_count(
            args.count if args.count is not None else config.quiz.question_count
        )
    except (ConfigError, WorkspaceError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2

    logger = _logger_for(config, layout, "play.log")
    console = console or Console()
    provider = _build_provider(args, config, logger)
    controller_kwargs = {} if clock is None else {"clock": clock}
    controller = QuizController(
        provider,
        stats=_aggregator_for(config, layout, logger),
        question_count=count,
        seconds_per_question=config.quiz.seconds_per_question,
        grace_seconds=config.quiz.grace_seconds,
        logger=logger,
        **controller_kwargs,
    )
    ask = input_provider or (lambda: console.input("[bold cyan]> [/]"))
    try:
        report = run_quiz_session(
            controller,
            console,
            ask,
            initial_topic=args.topic,
            **controller_kwargs,
        )
    finally:
        if isinstance(provider, HttpQuestionProvider):
            provider.close()

    logger.info(
        "Session ended",
        extra={
            "quizzes": len(report.outcomes),
            "exit_action": report.exit_action,
        },
    )
    if report.outcomes:
        console.print(f"Completed {len(report.outcomes)} quiz(zes).")
    return 0


# stats -----------------------------------------------------------------


def build_stats_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster stats",
        description="Show quiz history and per-topic performance.",
    )
    parser.add_argument(
        "--recent",
        type=int,
        default=5,
        help="Number of recent quizzes to list",
    )
    parser.add_argument(
        "--clear", action="store_true", help="Delete all recorded stats"
    )
    parser.add_argument("--config", type=Path, help="Path to quizmaster.toml")
    return parser


def stats_main(
    argv: Sequence[str] | None = None, *, console: Optional[Console] = None
) -> int:
    args = build_stats_parser().parse_args(
        list(argv) if argv is not None else None
    )
    if args.recent < 0:
        print("Error: --recent must be zero or greater")
        return 2
    try:
        config, layout = _prepare(args.config)
    except (ConfigError, WorkspaceError) as exc:
        print(f"Error: {exc}")
        return 2

    logger = _logger_for(config, layout, "stats.log")
    aggregator = _aggregator_for(config, layout, logger)
    console = console or Console()
    if args.clear:
        aggregator.clear()
        console.print("[green]Statistics cleared.[/]")
        return 0
    render_stats(console, aggregator, recent=args.recent)
    return 0


# topics ----------------------------------------------------------------


def topics_main(
    argv: Sequence[str] | None = None, *, console: Optional[Console] = None
) -> int:
    parser = argparse.ArgumentParser(
        prog="quizmaster topics", description="List the quiz topics."
    )
    parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()
    table = Table(box=box.SIMPLE)
    table.add_column("Id", style="cyan")
    table.add_column("Topic")
    for topic in TOPICS:
        table.add_row(topic.id, f"{topic.emoji} {topic.name}")
    console.print(table)
    return 0


# check -----------------------------------------------------------------


def build_check_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster check",
        description=(
            "Generate a single question against the LLM provider to verify "
            "credentials and connectivity."
        ),
    )
    parser.add_argument(
        "--topic", default="science", help="Topic to ask about"
    )
    parser.add_argument("--config", type=Path, help="Path to quizmaster.toml")
    return parser


def check_main(
    argv: Sequence[str] | None = None, *, console: Optional[Console] = None
) -> int:
    args = build_check_parser().parse_args(
        list(argv) if argv is not None else None
    )
    try:
        config, layout = _prepare(args.config)
    except (ConfigError, WorkspaceError) as exc:
        print(f"Error: {exc}")
        return 2

    logger = _logger_for(config, layout, "check.log")
    console = console or Console()
    console.print(
        f"Testing {config.ai.model} at {config.ai.api_base or 'default endpoint'}"
    )
    generate = generator_from_config(config, logger=logger)
    try:
        questions = generate(args.topic, 1)
    except GenerationError as exc:
        logger.error("Connectivity check failed", extra={"error": str(exc)})
        console.print(f"[bold red]Connectivity check failed:[/] {exc}")
        return 1

    question = questions[0]
    console.print("[bold green]Connection OK.[/] Sample question:")
    console.print(Text(question.text, style="bold"))
    for idx, option in enumerate(question.options):
        marker = "*" if idx == question.correct_answer else " "
        console.print(Text(f" {marker} {OPTION_KEYS[idx]}. {option}"))
    return 0
