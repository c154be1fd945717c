from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from fixtures import FakeChatClient, make_questions, question_payload
from quizmaster import server
from quizmaster.config import load_config
from quizmaster.generator import GenerationError, QuestionGenerator


def make_client(generator) -> TestClient:
    return TestClient(server.create_app(generator))


def test_questions_endpoint_returns_questions():
    calls = []

    def generator(topic, count):
        calls.append((topic, count))
        return make_questions(count, correct=3)

    client = make_client(generator)

    response = client.post(
        "/api/quiz/questions", json={"topic": "science", "count": 2}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["topic"] == "science"
    assert len(body["questions"]) == 2
    assert body["questions"][0] == {
        "text": "Question 1?",
        "options": ["Option A", "Option B", "Option C", "Option D"],
        "correctAnswer": 3,
    }
    assert calls == [("science", 2)]


def test_count_defaults_to_five():
    calls = []

    def generator(topic, count):
        calls.append(count)
        return make_questions(count)

    response = make_client(generator).post(
        "/api/quiz/questions", json={"topic": "history"}
    )

    assert response.status_code == 200
    assert calls == [5]


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"topic": ""},
        {"topic": 42},
        {"topic": "science", "count": 0},
        {"topic": "science", "count": 11},
        {"topic": "science", "count": "5"},
        {"topic": "science", "count": 2.5},
    ],
)
def test_invalid_requests_answer_400(body):
    calls = []

    def generator(topic, count):
        calls.append(topic)
        return make_questions(count)

    response = make_client(generator).post("/api/quiz/questions", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "Invalid request"
    assert payload["errors"]
    assert calls == []


def test_generation_failure_answers_500():
    def generator(topic, count):
        raise GenerationError("Failed to parse API response")

    response = make_client(generator).post(
        "/api/quiz/questions", json={"topic": "sports", "count": 3}
    )

    assert response.status_code == 500
    assert response.json() == {
        "message": "Failed to fetch quiz questions",
        "error": "Failed to parse API response",
    }


def test_unexpected_generator_error_answers_500_json():
    def generator(topic, count):
        raise TypeError("'NoneType' object is not subscriptable")

    response = make_client(generator).post(
        "/api/quiz/questions", json={"topic": "science"}
    )

    assert response.status_code == 500
    assert response.json() == {
        "message": "Failed to fetch quiz questions",
        "error": "'NoneType' object is not subscriptable",
    }


def test_reply_without_choices_answers_500_json():
    fake = FakeChatClient(side_effect=lambda kwargs: SimpleNamespace(choices=None))
    generator = QuestionGenerator(lambda: fake)

    response = make_client(generator).post(
        "/api/quiz/questions", json={"topic": "science", "count": 1}
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Chat completion returned no choices"


def test_end_to_end_with_fake_chat_client():
    fake = FakeChatClient()
    fake.queue_json(
        {"quiz": [question_payload(idx, topic="movies") for idx in range(4)]}
    )
    generator = QuestionGenerator(lambda: fake, model="llama3-70b-8192")

    response = make_client(generator).post(
        "/api/quiz/questions", json={"topic": "movies", "count": 3}
    )

    assert response.status_code == 200
    assert len(response.json()["questions"]) == 3
    assert fake.calls[0]["model"] == "llama3-70b-8192"


def test_generator_from_config_uses_ai_settings(data_home, chat_factory):
    config = load_config(env={"QUIZMASTER_DATA_HOME": str(data_home)})

    generator = server.generator_from_config(config)

    assert generator.model == "llama3-70b-8192"
    assert generator.temperature == 0.7
    assert generator.max_tokens == 2000


def test_main_runs_uvicorn_with_config(data_home, monkeypatch, tmp_path):
    config_path = tmp_path / "quizmaster.toml"
    config_path.write_text(
        '[server]\nhost = "0.0.0.0"\nport = 9001\n', encoding="utf-8"
    )
    runs = []
    monkeypatch.setattr(
        server.uvicorn,
        "run",
        lambda app, host, port: runs.append((app, host, port)),
    )

    code = server.main(["--config", str(config_path), "--port", "9100"])

    assert code == 0
    app, host, port = runs[0]
    assert host == "0.0.0.0"
    assert port == 9100
    assert (data_home / "logs" / "server.log").exists()


def test_main_reports_config_errors(data_home, tmp_path, capsys):
    config_path = tmp_path / "broken.toml"
    config_path.write_text("[server]\nport = 'eighty'\n", encoding="utf-8")

    code = server.main(["--config", str(config_path)])

    assert code == 2
    assert "server.port" in capsys.readouterr().out
