from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from fixtures import FakeChatClient, question_payload
from quizmaster.generator import (
    GenerationError,
    QuestionGenerator,
    build_prompt,
    extract_question_array,
    generate_questions,
)


def payloads(count: int):
    return [question_payload(idx) for idx in range(count)]


def test_prompt_mentions_topic_count_and_shape():
    prompt = build_prompt("history", 7)

    assert "Generate 7 multiple-choice quiz questions about history" in prompt
    assert '"correctAnswer"' in prompt
    assert "exactly 4 answer options" in prompt


def test_extract_accepts_bare_array():
    assert extract_question_array(json.dumps(payloads(2))) == payloads(2)


def test_extract_accepts_questions_key():
    content = json.dumps({"questions": payloads(1)})

    assert extract_question_array(content) == payloads(1)


def test_extract_falls_back_to_first_question_like_array():
    content = json.dumps(
        {
            "meta": ["not", "questions"],
            "empty": [],
            "quiz": payloads(2),
            "later": payloads(1),
        }
    )

    assert extract_question_array(content) == payloads(2)


def test_extract_strips_code_fences():
    content = "```json\n" + json.dumps({"questions": payloads(1)}) + "\n```"

    assert extract_question_array(content) == payloads(1)


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("", "empty response"),
        ("not json at all", "Failed to parse API response"),
        ('{"data": {"x": 1}}', "Could not find questions array"),
        ('"just a string"', "neither an object nor array"),
    ],
)
def test_extract_failures(content, message):
    with pytest.raises(GenerationError) as exc:
        extract_question_array(content)
    assert message in str(exc.value)


def test_generate_questions_sends_json_mode_request():
    client = FakeChatClient()
    client.queue_json({"questions": payloads(5)})

    questions = generate_questions(
        "technology", 3, client=client, model="test-model", temperature=0.3
    )

    assert len(questions) == 3
    call = client.calls[0]
    assert call["model"] == "test-model"
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 2000
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0]["role"] == "user"
    assert "about technology" in call["messages"][0]["content"]


def test_generate_questions_rejects_too_few():
    client = FakeChatClient()
    client.queue_json({"questions": payloads(2)})

    with pytest.raises(GenerationError) as exc:
        generate_questions("sports", 3, client=client)
    assert "expected 3" in str(exc.value)


def test_generate_questions_rejects_malformed_question():
    client = FakeChatClient()
    client.queue_json(
        {"questions": [{"text": "Q?", "options": ["A", "B"], "correctAnswer": 0}]}
    )

    with pytest.raises(GenerationError) as exc:
        generate_questions("sports", 1, client=client)
    assert "malformed" in str(exc.value)


def test_api_errors_become_generation_errors():
    request = httpx.Request("POST", "https://api.example.test/chat")

    def boom(kwargs):
        raise openai.APIConnectionError(request=request)

    client = FakeChatClient(side_effect=boom)

    with pytest.raises(GenerationError) as exc:
        generate_questions("sports", 1, client=client)
    assert "Chat completion request failed" in str(exc.value)


@pytest.mark.parametrize("choices", [[], None])
def test_missing_choices_become_generation_errors(choices):
    client = FakeChatClient(
        side_effect=lambda kwargs: SimpleNamespace(choices=choices)
    )

    with pytest.raises(GenerationError):
        generate_questions("sports", 1, client=client)


def test_question_generator_creates_client_once():
    created = []

    def factory():
        client = FakeChatClient()
        client.queue_json(payloads(1))
        client.queue_json(payloads(1))
        created.append(client)
        return client

    generator = QuestionGenerator(factory, model="m")

    assert len(generator("science", 1)) == 1
    assert len(generator("science", 1)) == 1
    assert len(created) == 1


def test_question_generator_reports_missing_credentials():
    def factory():
        raise RuntimeError("GROQ_API_KEY not found in environment")

    generator = QuestionGenerator(factory)

    with pytest.raises(GenerationError) as exc:
        generator("science", 1)
    assert "GROQ_API_KEY" in str(exc.value)
