"""HTTP API proxying question generation to the chat-completion provider."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import ConfigError, QuizmasterConfig, load_config
from .core import configure_logger, ensure_workspace, load_client
from .core.workspace import WorkspaceError
from .generator import GenerationError, QuestionGenerator
from .models import Question
from .provider import DEFAULT_COUNT, MAX_COUNT, MIN_COUNT

__all__ = [
    "QuizQuestionsRequest",
    "create_app",
    "generator_from_config",
    "main",
]

Generator = Callable[[str, int], Sequence[Question]]


class QuizQuestionsRequest(BaseModel):
    topic: str = Field(min_length=1, strict=True)
    count: int = Field(
        default=DEFAULT_COUNT, ge=MIN_COUNT, le=MAX_COUNT, strict=True
    )


class QuizQuestionsResponse(BaseModel):
    topic: str
    questions: List[dict]


def generator_from_config(
    config: QuizmasterConfig, *, logger: Optional[logging.Logger] = None
) -> QuestionGenerator:
    ai = config.ai
    return QuestionGenerator(
        lambda: load_client(
            api_key_env=ai.api_key_env,
            api_base=ai.api_base,
            timeout=float(ai.request_timeout_seconds),
        ),
        model=ai.model,
        temperature=ai.temperature,
        max_tokens=ai.max_tokens,
        logger=logger,
    )


def create_app(
    generator: Generator,
    *,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    """Build the API around ``generator``.

    Validation failures answer 400 with ``{message, errors}``; generation
    failures answer 500 with ``{message, error}``.
    """

    log = logger or logging.getLogger(__name__)
    app = FastAPI(title="QuizMaster")

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        log.info(
            "Rejected invalid request",
            extra={"path": request.url.path, "errors": len(exc.errors())},
        )
        return JSONResponse(
            status_code=400,
            content={
                "message": "Invalid request",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    def _generation_failed(exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "message": "Failed to fetch quiz questions",
                "error": str(exc),
            },
        )

    @app.post("/api/quiz/questions", response_model=QuizQuestionsResponse)
    def quiz_questions(body: QuizQuestionsRequest):
        try:
            questions = generator(body.topic, body.count)
        except GenerationError as exc:
            log.error(
                "Error fetching quiz questions",
                extra={"topic": body.topic, "error": str(exc)},
            )
            return _generation_failed(exc)
        except Exception as exc:
            log.exception(
                "Unexpected error fetching quiz questions",
                extra={"topic": body.topic},
            )
            return _generation_failed(exc)
        log.info(
            "Served quiz questions",
            extra={"topic": body.topic, "count": len(questions)},
        )
        return {
            "topic": body.topic,
            "questions": [question.to_dict() for question in questions],
        }

    return app


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="quizmaster serve",
        description="Serve the quiz question API.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--config", type=Path, help="Path to quizmaster.toml")
    p.add_argument("--host", help="Bind address (overrides config)")
    p.add_argument("--port", type=int, help="Bind port (overrides config)")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        config = load_config(explicit_path=args.config)
        layout = ensure_workspace(path=config.data_home_override)
    except (ConfigError, WorkspaceError) as exc:
        print(f"Error: {exc}")
        return 2
    logger, log_path = configure_logger(
        "quizmaster",
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose,
        filename="server.log",
    )
    app = create_app(generator_from_config(config, logger=logger), logger=logger)
    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info(
        "Starting question API",
        extra={"host": host, "port": port, "log_path": str(log_path)},
    )
    uvicorn.run(app, host=host, port=port)
    return 0
