from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from quizmaster import config as config_mod
from quizmaster.config import ConfigError, load_config


def test_defaults_when_default_file_missing(tmp_path):
    cfg = load_config(env={"QUIZMASTER_DATA_HOME": str(tmp_path / "home")})

    assert cfg.data_home_override is None
    assert cfg.ai.model == "llama3-70b-8192"
    assert cfg.ai.api_base == "https://api.groq.com/openai/v1"
    assert cfg.ai.api_key_env == "GROQ_API_KEY"
    assert cfg.ai.temperature == 0.7
    assert cfg.quiz.question_count == 5
    assert cfg.quiz.seconds_per_question == 30
    assert cfg.quiz.grace_seconds == 1.5
    assert cfg.stats.max_attempts == 50
    assert cfg.stats.storage_key == "quizmaster_user_stats"
    assert cfg.logging.level == "INFO"


def test_default_location_is_inside_workspace(workspace):
    home = workspace.root / "home"
    workspace.write(
        "home/config/quizmaster.toml",
        "[quiz]\nquestion_count = 8\n\n[logging]\nlevel = 'debug'\n",
    )

    cfg = load_config(env={"QUIZMASTER_DATA_HOME": str(home)})

    assert cfg.quiz.question_count == 8
    assert cfg.logging.level == "DEBUG"
    assert cfg.quiz.api_url == "http://127.0.0.1:8000"


def test_env_override_takes_precedence(workspace):
    path = workspace.write("custom.toml", "[server]\nport = 9000\n")

    cfg = load_config(env={"QUIZMASTER_CONFIG": str(path)})

    assert cfg.server.port == 9000


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(ConfigError) as exc:
        load_config(explicit_path=tmp_path / "missing.toml", env={})
    assert "not found" in str(exc.value)


def test_data_home_override_is_resolved(workspace):
    path = workspace.write(
        "cfg.toml", "[paths]\ndata_home = '~/quiz-data'\n"
    )

    cfg = load_config(explicit_path=path, env={})

    assert cfg.data_home_override == (Path.home() / "quiz-data").resolve()


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("[unknown]\nkey = 1\n", "Unknown configuration key 'unknown'"),
        ("[quiz]\nbogus = 1\n", "Unknown configuration key 'quiz.bogus'"),
        ("quiz = 5\n", "Expected table for 'quiz'"),
        ("[quiz]\nquestion_count = 11\n", "quiz.question_count"),
        ("[quiz]\nquestion_count = true\n", "quiz.question_count"),
        ("[ai]\ntemperature = 3.0\n", "ai.temperature"),
        ("[ai]\nmodel = ''\n", "ai.model"),
        ("[server]\nport = 70000\n", "server.port"),
        ("[logging]\nlevel = 'LOUD'\n", "logging.level"),
        ("[logging]\nverbose = 'yes'\n", "logging.verbose"),
        ("this is = not toml [", "Failed to parse config TOML"),
    ],
)
def test_invalid_config_raises(workspace, content, message):
    path = workspace.write("bad.toml", content)

    with pytest.raises(ConfigError) as exc:
        load_config(explicit_path=path, env={})
    assert message in str(exc.value)


def test_template_parses_to_defaults(tmp_path):
    template = config_mod.config_template()

    tree = config_mod.default_tree()
    config_mod._merge_dict(tree, tomllib.loads(template))

    assert tree == config_mod.default_tree()


def test_write_template_refuses_overwrite(tmp_path):
    path = tmp_path / "config" / "quizmaster.toml"

    config_mod.write_template(path)
    assert path.read_text(encoding="utf-8").startswith("# QuizMaster")
    assert (path.stat().st_mode & 0o777) == 0o600

    with pytest.raises(ConfigError):
        config_mod.write_template(path)

    path.write_text("changed", encoding="utf-8")
    config_mod.write_template(path, overwrite=True)
    assert "[quiz]" in path.read_text(encoding="utf-8")
