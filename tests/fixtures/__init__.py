"""Shared testing fixtures and fakes for the quizmaster test suite."""

from .chat import FakeChatClient, FakeChatClientFactory  # noqa: F401
from .quiz import (  # noqa: F401
    ManualClock,
    StubQuestionSource,
    make_questions,
    question_payload,
    scripted_input,
)
from .workspace import WorkspaceBuilder  # noqa: F401

__all__ = [
    "FakeChatClient",
    "FakeChatClientFactory",
    "ManualClock",
    "StubQuestionSource",
    "WorkspaceBuilder",
    "make_questions",
    "question_payload",
    "scripted_input",
]
