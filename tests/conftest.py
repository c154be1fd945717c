from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import (  # noqa: E402
    FakeChatClientFactory,
    ManualClock,
    WorkspaceBuilder,
)
from quizmaster.core import ai  # noqa: E402


@pytest.fixture
def chat_factory(monkeypatch: pytest.MonkeyPatch) -> FakeChatClientFactory:
    """Replace the ``OpenAI`` constructor with a recording fake."""

    factory = FakeChatClientFactory()
    monkeypatch.setattr(ai, "OpenAI", factory)
    monkeypatch.setattr(ai, "load_dotenv", lambda *a, **k: False)
    return factory


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a helper bound to pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def data_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the workspace and config lookup at a tmp directory."""

    home = tmp_path / "data-home"
    monkeypatch.setenv("QUIZMASTER_DATA_HOME", str(home))
    monkeypatch.delenv("QUIZMASTER_CONFIG", raising=False)
    return home


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("quizmaster")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
