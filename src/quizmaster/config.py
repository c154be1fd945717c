"""TOML configuration for quizmaster.

A user file is merged over built-in defaults. Unknown keys and badly typed
values raise :class:`ConfigError` instead of being silently ignored.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

from .core import workspace as workspace_mod
from .core.ai import DEFAULT_API_BASE, DEFAULT_API_KEY_ENV
from .generator import DEFAULT_MODEL
from .provider import MAX_COUNT, MIN_COUNT

CONFIG_PATH_ENV = "QUIZMASTER_CONFIG"
CONFIG_FILENAME = "quizmaster.toml"


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class AIConfig:
    model: str
    api_base: Optional[str]
    api_key_env: str
    temperature: float
    max_tokens: int
    request_timeout_seconds: int


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int


@dataclass(frozen=True)
class QuizConfig:
    api_url: str
    question_count: int
    seconds_per_question: int
    grace_seconds: float
    request_timeout_seconds: int


@dataclass(frozen=True)
class StatsConfig:
    max_attempts: int
    storage_key: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizmasterConfig:
    data_home_override: Optional[Path]
    ai: AIConfig
    server: ServerConfig
    quiz: QuizConfig
    stats: StatsConfig
    logging: LoggingConfig


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_int_range(
    value: Any, *, field: str, min_value: int, max_value: Optional[int] = None
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{field}' must be an integer.")
    if value < min_value or (max_value is not None and value > max_value):
        bound = f"between {min_value} and {max_value}" if max_value else (
            f"at least {min_value}"
        )
        raise ConfigError(f"'{field}' must be {bound}.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None or value == "":
        return None
    return _require_string(value, field=field)


def _build_config(tree: Mapping[str, Any]) -> QuizmasterConfig:
    paths = tree["paths"]
    ai = tree["ai"]
    server = tree["server"]
    quiz = tree["quiz"]
    stats = tree["stats"]
    log = tree["logging"]

    data_home = _optional_string(paths["data_home"], field="paths.data_home")
    level = _require_string(log["level"], field="logging.level").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigError(
            "logging.level must be one of DEBUG, INFO, WARNING, ERROR, "
            "CRITICAL."
        )

    return QuizmasterConfig(
        data_home_override=(
            Path(data_home).expanduser().resolve() if data_home else None
        ),
        ai=AIConfig(
            model=_require_string(ai["model"], field="ai.model"),
            api_base=_optional_string(ai["api_base"], field="ai.api_base"),
            api_key_env=_require_string(
                ai["api_key_env"], field="ai.api_key_env"
            ),
            temperature=_require_float_range(
                ai["temperature"],
                field="ai.temperature",
                min_value=0.0,
                max_value=2.0,
            ),
            max_tokens=_require_int_range(
                ai["max_tokens"], field="ai.max_tokens", min_value=1
            ),
            request_timeout_seconds=_require_int_range(
                ai["request_timeout_seconds"],
                field="ai.request_timeout_seconds",
                min_value=1,
            ),
        ),
        server=ServerConfig(
            host=_require_string(server["host"], field="server.host"),
            port=_require_int_range(
                server["port"], field="server.port", min_value=1, max_value=65535
            ),
        ),
        quiz=QuizConfig(
            api_url=_require_string(quiz["api_url"], field="quiz.api_url"),
            question_count=_require_int_range(
                quiz["question_count"],
                field="quiz.question_count",
                min_value=MIN_COUNT,
                max_value=MAX_COUNT,
            ),
            seconds_per_question=_require_int_range(
                quiz["seconds_per_question"],
                field="quiz.seconds_per_question",
                min_value=1,
            ),
            grace_seconds=_require_float_range(
                quiz["grace_seconds"],
                field="quiz.grace_seconds",
                min_value=0.0,
                max_value=60.0,
            ),
            request_timeout_seconds=_require_int_range(
                quiz["request_timeout_seconds"],
                field="quiz.request_timeout_seconds",
                min_value=1,
            ),
        ),
        stats=StatsConfig(
            max_attempts=_require_int_range(
                stats["max_attempts"], field="stats.max_attempts", min_value=1
            ),
            storage_key=_require_string(
                stats["storage_key"], field="stats.storage_key"
            ),
        ),
        logging=LoggingConfig(
            level=level,
            verbose=_require_bool(log["verbose"], field="logging.verbose"),
        ),
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> tuple[Path, bool]:
    """Return the config path and whether the caller asked for it by name."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return Path(explicit_path).expanduser().resolve(), True
    env_override = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if env_override:
        return Path(env_override).expanduser().resolve(), True
    home, _ = workspace_mod.resolve_home(env=env_map)
    return home / "config" / CONFIG_FILENAME, False


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizmasterConfig:
    """Load the TOML config, applying defaults and validation.

    A missing file at the default location yields the defaults; a missing
    file that was named explicitly is an error.
    """

    path, explicit = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = default_tree()
    if explicit or path.exists():
        toml_data = _load_toml(path)
        _merge_dict(tree, toml_data)
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.write_text(config_template(), encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": None,
    },
    "ai": {
        "model": DEFAULT_MODEL,
        "api_base": DEFAULT_API_BASE,
        "api_key_env": DEFAULT_API_KEY_ENV,
        "temperature": 0.7,
        "max_tokens": 2000,
        "request_timeout_seconds": 60,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },
    "quiz": {
        "api_url": "http://127.0.0.1:8000",
        "question_count": 5,
        "seconds_per_question": 30,
        "grace_seconds": 1.5,
        "request_timeout_seconds": 60,
    },
    "stats": {
        "max_attempts": 50,
        "storage_key": "quizmaster_user_stats",
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# QuizMaster configuration

[paths]
# Override the data directory (defaults to ~/.quizmaster-data)
# data_home = "~/quizmaster-data"

[ai]
# OpenAI-compatible chat completion endpoint used by `quizmaster serve`
model = "llama3-70b-8192"
api_base = "https://api.groq.com/openai/v1"
# Environment variable holding the bearer token (.env files are honoured)
api_key_env = "GROQ_API_KEY"
# Sampling temperature (0.0-2.0)
temperature = 0.7
max_tokens = 2000
request_timeout_seconds = 60

[server]
host = "127.0.0.1"
port = 8000

[quiz]
# Where `quizmaster play` fetches questions from
api_url = "http://127.0.0.1:8000"
# Questions per quiz (1-10)
question_count = 5
seconds_per_question = 30
# Pause after a timeout before moving on
grace_seconds = 1.5
request_timeout_seconds = 60

[stats]
# Attempts kept in history; older ones are dropped
max_attempts = 50
storage_key = "quizmaster_user_stats"

[logging]
level = "INFO"
verbose = false
"""
