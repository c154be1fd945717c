"""Chat-completion client loading."""

from __future__ import annotations

import os
from typing import Any, Mapping

from dotenv import load_dotenv
from openai import OpenAI

__all__ = ["DEFAULT_API_BASE", "DEFAULT_API_KEY_ENV", "load_client"]

DEFAULT_API_BASE = "https://api.groq.com/openai/v1"
DEFAULT_API_KEY_ENV = "GROQ_API_KEY"


def load_client(
    *,
    api_key_env: str = DEFAULT_API_KEY_ENV,
    api_base: str | None = DEFAULT_API_BASE,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> Any:
    """Build an OpenAI-compatible client from environment credentials.

    ``.env`` files are honoured. The key is sent as a bearer token to
    ``api_base``, which defaults to Groq's OpenAI-compatible endpoint.
    """

    if env is None:
        load_dotenv()
        env = os.environ
    api_key = (env.get(api_key_env) or "").strip()
    if not api_key:
        raise RuntimeError(
            f"{api_key_env} not found in environment. Set it or add to .env"
        )
    kwargs: dict[str, Any] = {"api_key": api_key}
    if api_base:
        kwargs["base_url"] = api_base
    if timeout is not None:
        kwargs["timeout"] = timeout
    return OpenAI(**kwargs)
