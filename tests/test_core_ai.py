from __future__ import annotations

import pytest

from quizmaster.core import ai
from quizmaster.core.ai import load_client


def test_load_client_requires_api_key(chat_factory) -> None:
    with pytest.raises(RuntimeError) as exc:
        load_client(env={})
    assert "GROQ_API_KEY" in str(exc.value)
    assert chat_factory.last is None


def test_load_client_uses_groq_endpoint_by_default(chat_factory) -> None:
    client = load_client(env={"GROQ_API_KEY": "test-key"}, timeout=12.0)

    assert client is chat_factory.last
    assert client.init_kwargs == {
        "api_key": "test-key",
        "base_url": ai.DEFAULT_API_BASE,
        "timeout": 12.0,
    }


def test_load_client_custom_env_and_base(chat_factory) -> None:
    client = load_client(
        api_key_env="MY_KEY",
        api_base=None,
        env={"MY_KEY": "  secret  "},
    )

    assert client.init_kwargs == {"api_key": "secret"}


def test_load_client_reads_dotenv(
    monkeypatch: pytest.MonkeyPatch, chat_factory
) -> None:
    calls = []

    def fake_load_dotenv(*args, **kwargs):
        calls.append(True)
        monkeypatch.setenv("GROQ_API_KEY", "from-dotenv")
        return True

    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.setattr(ai, "load_dotenv", fake_load_dotenv)

    client = load_client()

    assert calls
    assert client.init_kwargs["api_key"] == "from-dotenv"
