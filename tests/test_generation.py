from types import SimpleNamespace

import pytest

from docintel.errors import GenerativeModelError
from docintel.generation import (
    APOLOGY,
    FALLBACK_NAME,
    Generator,
    extract_text,
    sanitize_display_name,
)

from tests.conftest import FakeChatClient, completion


def test_extract_text_prefers_first_choice_content():
    resp = SimpleNamespace(
        choices=[
            SimpleNamespace(message=SimpleNamespace(content="primary", refusal=None)),
            SimpleNamespace(message=SimpleNamespace(content="secondary", refusal=None)),
        ]
    )
    assert extract_text(resp) == "primary"


def test_extract_text_falls_back_to_content_parts():
    resp = {
        "choices": [
            {"message": {"content": [{"type": "text", "text": "Paris "}, {"type": "text", "text": "[#1]"}]}},
        ]
    }
    assert extract_text(resp) == "Paris [#1]"


def test_extract_text_uses_refusal_text():
    resp = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None, refusal="I can't help"))])
    assert extract_text(resp) == "I can't help"


def test_extract_text_without_text_raises():
    with pytest.raises(GenerativeModelError) as exc:
        extract_text(SimpleNamespace(choices=[]), model="gpt-4o-mini")
    assert exc.value.status_code == 502
    assert exc.value.details["model"] == "gpt-4o-mini"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Q3 Financial Report!!", "Q3-Financial-Report"),
        ('"Project   Plan: Draft"', "Project-Plan-Draft"),
        ("a?", FALLBACK_NAME),
        ("", FALLBACK_NAME),
        ("word " * 30, ("word-" * 10)[:50]),
    ],
)
def test_sanitize_display_name(raw, expected):
    assert sanitize_display_name(raw) == expected


@pytest.mark.asyncio
async def test_answer_sends_system_prompt_and_settings(test_settings):
    client = FakeChatClient(answer_fn=lambda prompt: "The answer [#1]")
    answer = await Generator(test_settings, client=client).answer("Question: ?")

    assert answer == "The answer [#1]"
    call = client.calls[0]
    assert call["model"] == test_settings.OPENAI_MODEL
    assert call["max_tokens"] == test_settings.MAX_OUTPUT_TOKENS
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][1] == {"role": "user", "content": "Question: ?"}


@pytest.mark.asyncio
async def test_blank_answer_becomes_apology(test_settings):
    client = FakeChatClient(answer_fn=lambda prompt: "   ")
    assert await Generator(test_settings, client=client).answer("prompt") == APOLOGY


@pytest.mark.asyncio
async def test_upstream_failure_raises_generation_error(test_settings):
    client = FakeChatClient(answer_fn=lambda prompt: RuntimeError("rate limited"))
    with pytest.raises(GenerativeModelError) as exc:
        await Generator(test_settings, client=client).answer("prompt")
    assert "rate limited" in exc.value.details["error"]


@pytest.mark.asyncio
async def test_missing_api_key_raises(test_settings):
    with pytest.raises(GenerativeModelError):
        await Generator(test_settings).answer("prompt")


@pytest.mark.asyncio
async def test_display_name_is_sanitized(test_settings):
    client = FakeChatClient(name="Annual Budget, 2024")
    name = await Generator(test_settings, client=client).display_name("some text " * 500)

    assert name == "Annual-Budget-2024"
    call = client.calls[0]
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 50
    assert len(call["messages"][0]["content"]) < 1200


@pytest.mark.asyncio
async def test_display_name_falls_back_on_failure(test_settings):
    failing = FakeChatClient(name=RuntimeError("boom"))
    assert await Generator(test_settings, client=failing).display_name("text") == FALLBACK_NAME
    assert await Generator(test_settings).display_name("text") == FALLBACK_NAME


def test_completion_helper_matches_sdk_shape():
    assert extract_text(completion("ok")) == "ok"
