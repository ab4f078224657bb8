"""Unit tests for prompt building, fallback text and the OpenAI backend."""

import io
import json
import wave
from types import SimpleNamespace

import httpx
import pytest

from personachat.core.exceptions import (
    GenerationError,
    GenerationQuotaExceeded,
    GenerationUnavailable,
)
from personachat.generation import (
    OpenAIContentGenerator,
    build_system_prompt,
    describe_personality,
    fallback_message,
)
from personachat.generation.fallback import GENERIC_TEMPLATES, INTEREST_TEMPLATES
from personachat.generation.openai_generator import wav_duration_seconds
from personachat.schemas import PersonalityTraits

from conftest import MONDAY_0900, MONDAY_1000


def _persona(**kwargs):
    values = {
        "id": 1,
        "name": "Nova",
        "tagline": "a curious tech enthusiast",
        "traits": {"extroversion": 8, "emotional": 6, "playfulness": 2, "adventurous": 5},
        "interests": ["Technology", "AI"],
    }
    values.update(kwargs)
    return SimpleNamespace(**values)


def _message(content, from_persona):
    return SimpleNamespace(content=content, is_from_persona=from_persona)


def _wav(seconds: float, rate: int = 8000) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * int(rate * seconds))
    return buffer.getvalue()


# ============================================================================
# Personality
# ============================================================================

def test_describe_personality_thresholds():
    traits = PersonalityTraits(extroversion=8, emotional=6, playfulness=5, adventurous=0)
    assert describe_personality(traits) == (
        "very outgoing and extroverted, "
        "balanced between emotional and analytical, "
        "serious and straightforward, "
        "cautious and careful"
    )


def test_system_prompt_mentions_name_and_interests():
    prompt = build_system_prompt(_persona())

    assert prompt.startswith("I am Nova, a curious tech enthusiast.")
    assert "very outgoing and extroverted" in prompt
    assert "Technology, AI" in prompt


def test_system_prompt_without_tagline_or_interests():
    prompt = build_system_prompt(_persona(tagline="", interests=[]))
    assert prompt.startswith("I am Nova.")
    assert "many things" in prompt


# ============================================================================
# Fallback
# ============================================================================

def test_fallback_uses_first_known_interest():
    persona = _persona(interests=["Knitting", "Cooking", "Technology"])
    assert fallback_message(persona, now=MONDAY_0900) in INTEREST_TEMPLATES["Cooking"]


def test_fallback_is_deterministic():
    persona = _persona()
    assert fallback_message(persona, now=MONDAY_0900) == fallback_message(persona, now=MONDAY_0900)


def test_fallback_varies_with_seed():
    persona = _persona(interests=[])
    texts = {
        fallback_message(persona, now=MONDAY_0900, user_message=f"msg {i}")
        for i in range(20)
    }
    assert texts <= set(GENERIC_TEMPLATES)
    assert len(texts) > 1


def test_fallback_without_interests_is_not_empty():
    persona = _persona(interests=[])
    assert fallback_message(persona, now=MONDAY_1000)


# ============================================================================
# OpenAI backend
# ============================================================================

def _generator(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIContentGenerator(
        api_key="sk-test", base_url="https://llm.test/v1", model="gpt-test",
        http_client=client, **kwargs,
    )


def _completion(text):
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


async def test_generate_proactive_message_sends_history():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _completion("  Hey! Read anything about AI lately?  ")

    history = [_message("hi", False), _message("hello!", True)]
    text = await _generator(handler).generate_proactive_message(_persona(), history)

    assert text == "Hey! Read anything about AI lately?"
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    roles = [m["role"] for m in seen["body"]["messages"]]
    assert roles == ["system", "user", "assistant", "user"]
    assert "Technology, AI" in seen["body"]["messages"][-1]["content"]
    assert seen["body"]["model"] == "gpt-test"


async def test_generate_reply_appends_user_message():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return _completion("Sounds fun!")

    reply = await _generator(handler).generate_reply(_persona(), [], "I went hiking")

    assert reply == "Sounds fun!"
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "I went hiking"}


async def test_empty_completion_uses_default_text():
    text = await _generator(lambda r: _completion("")).generate_proactive_message(_persona(), [])
    assert text == "Hey, how's it going?"


async def test_history_is_truncated():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return _completion("ok")

    history = [_message(f"m{i}", i % 2 == 0) for i in range(10)]
    await _generator(handler, history_limit=3).generate_reply(_persona(), history, "hi")

    contents = [m["content"] for m in seen["body"]["messages"][1:-1]]
    assert contents == ["m7", "m8", "m9"]


async def test_missing_api_key_is_unavailable():
    generator = OpenAIContentGenerator(api_key="")
    with pytest.raises(GenerationUnavailable):
        await generator.generate_proactive_message(_persona(), [])


async def test_rate_limit_is_quota_exceeded():
    handler = lambda r: httpx.Response(429, json={"error": {"code": "rate_limit_exceeded"}})
    with pytest.raises(GenerationQuotaExceeded):
        await _generator(handler).generate_proactive_message(_persona(), [])


async def test_insufficient_quota_is_quota_exceeded():
    handler = lambda r: httpx.Response(403, json={"error": {"code": "insufficient_quota"}})
    with pytest.raises(GenerationQuotaExceeded):
        await _generator(handler).generate_reply(_persona(), [], "hi")


async def test_server_error_is_unavailable():
    handler = lambda r: httpx.Response(503, text="overloaded")
    with pytest.raises(GenerationUnavailable):
        await _generator(handler).generate_proactive_message(_persona(), [])


async def test_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationUnavailable):
        await _generator(handler).generate_proactive_message(_persona(), [])


async def test_client_error_is_generation_error():
    handler = lambda r: httpx.Response(400, json={"error": {"code": "invalid_request"}})
    with pytest.raises(GenerationError) as exc_info:
        await _generator(handler).generate_proactive_message(_persona(), [])
    assert not isinstance(exc_info.value, (GenerationUnavailable, GenerationQuotaExceeded))


async def test_malformed_completion_is_unavailable():
    handler = lambda r: httpx.Response(200, json={"unexpected": True})
    with pytest.raises(GenerationUnavailable):
        await _generator(handler).generate_proactive_message(_persona(), [])


async def test_voice_disabled_returns_none():
    generator = _generator(lambda r: httpx.Response(500), voice_enabled=False)
    assert await generator.synthesize_voice("hello", _persona()) is None


async def test_synthesize_voice_writes_file(tmp_path):
    audio = _wav(2.5)
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=audio)

    generator = _generator(handler, voice_enabled=True, voice_dir=str(tmp_path))
    clip = await generator.synthesize_voice("hello", _persona())

    assert seen["url"] == "https://llm.test/v1/audio/speech"
    assert seen["body"]["input"] == "hello"
    assert clip.duration_seconds == 3
    filename = clip.url.rsplit("/", 1)[-1]
    assert (tmp_path / filename).read_bytes() == audio


def test_wav_duration_rounds_up():
    assert wav_duration_seconds(_wav(1.0)) == 1
    assert wav_duration_seconds(_wav(1.2)) == 2
    assert wav_duration_seconds(_wav(0.1)) == 1
