"""OpenAI-compatible chat completion and speech backend."""

import asyncio
import io
import logging
import math
import uuid
import wave
from pathlib import Path
from typing import Optional, Sequence

import httpx

from ..config import settings
from ..core.exceptions import (
    GenerationError,
    GenerationQuotaExceeded,
    GenerationUnavailable,
)
from ..database import Message, Persona
from ..schemas.chat import VoiceClip
from .personality import build_system_prompt

logger = logging.getLogger(__name__)

PROACTIVE_PROMPT = (
    "Based on my personality and our conversation history, generate a new message "
    "to send to the user. It should be casual, friendly, and related to my "
    "interests in {interests}."
)
DEFAULT_PROACTIVE_TEXT = "Hey, how's it going?"
DEFAULT_REPLY_TEXT = "I'm not sure how to respond to that."


class OpenAIContentGenerator:
    """
    Generate persona messages via an OpenAI-compatible HTTP API.

    Transport errors, timeouts and 5xx responses surface as
    GenerationUnavailable; 429s and exhausted-quota errors as
    GenerationQuotaExceeded. Any other error response is a GenerationError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        history_limit: int = 50,
        voice_enabled: Optional[bool] = None,
        voice_dir: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.history_limit = history_limit
        self.voice_enabled = settings.VOICE_ENABLED if voice_enabled is None else voice_enabled
        self.voice_dir = Path(voice_dir or settings.VOICE_STORAGE_DIR)
        self._http_client = http_client

    async def generate_proactive_message(
        self, persona: Persona, history: Sequence[Message]
    ) -> str:
        messages = self._build_messages(persona, history)
        interests = ", ".join(persona.interests) if persona.interests else "anything"
        messages.append({"role": "user", "content": PROACTIVE_PROMPT.format(interests=interests)})
        content = await self._complete(messages)
        return content or DEFAULT_PROACTIVE_TEXT

    async def generate_reply(
        self, persona: Persona, history: Sequence[Message], user_message: str
    ) -> str:
        messages = self._build_messages(persona, history)
        messages.append({"role": "user", "content": user_message})
        content = await self._complete(messages)
        return content or DEFAULT_REPLY_TEXT

    async def synthesize_voice(self, text: str, persona: Persona) -> Optional[VoiceClip]:
        """Render text to a WAV file under the voice directory."""
        if not self.voice_enabled:
            return None

        payload = {
            "model": settings.OPENAI_TTS_MODEL,
            "voice": settings.OPENAI_TTS_VOICE,
            "input": text,
            "response_format": "wav",
        }
        response = await self._post("/audio/speech", payload)
        audio = response.content

        filename = f"persona-{persona.id}-{uuid.uuid4().hex}.wav"
        self.voice_dir.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread((self.voice_dir / filename).write_bytes, audio)

        url = f"{settings.VOICE_URL_PREFIX.rstrip('/')}/{filename}"
        return VoiceClip(url=url, duration_seconds=wav_duration_seconds(audio))

    def _build_messages(self, persona: Persona, history: Sequence[Message]) -> list[dict]:
        messages = [{"role": "system", "content": build_system_prompt(persona)}]
        recent = list(history)[-self.history_limit:] if self.history_limit else list(history)
        for message in recent:
            messages.append({
                "role": "assistant" if message.is_from_persona else "user",
                "content": message.content,
            })
        return messages

    async def _complete(self, messages: list[dict]) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": settings.OPENAI_MAX_TOKENS,
            "temperature": settings.OPENAI_TEMPERATURE,
        }
        response = await self._post("/chat/completions", payload)
        try:
            data = response.json()
            content = data["choices"][0]["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GenerationUnavailable(f"Malformed completion response: {exc}") from exc
        return content.strip()

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        if not self.api_key:
            raise GenerationUnavailable("OPENAI_API_KEY is not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}{path}"
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.GENERATION_TIMEOUT) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise GenerationUnavailable(f"Timed out calling {path}") from exc
        except httpx.TransportError as exc:
            raise GenerationUnavailable(f"Cannot reach {self.base_url}: {exc}") from exc

        if response.status_code < 400:
            return response

        error_code = _error_code(response)
        logger.error(f"Generation API error {response.status_code} on {path}: {error_code}")
        if response.status_code == 429 or error_code == "insufficient_quota":
            raise GenerationQuotaExceeded(f"Rate limited or out of quota ({error_code})")
        if response.status_code >= 500:
            raise GenerationUnavailable(f"Upstream error {response.status_code}")
        raise GenerationError(
            f"Generation request rejected ({response.status_code}: {error_code})",
            status_code=502,
        )


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        return None
    if isinstance(error, dict):
        return error.get("code") or error.get("type")
    return None


def wav_duration_seconds(audio: bytes) -> int:
    """Duration of a WAV payload, rounded up to whole seconds."""
    with wave.open(io.BytesIO(audio), "rb") as wav:
        bytes_per_second = wav.getframerate() * wav.getnchannels() * wav.getsampwidth()
        frames = wav.getnframes()
        # Streamed WAVs carry a placeholder frame count
        data_bytes = min(frames * wav.getnchannels() * wav.getsampwidth(), len(audio))
    if bytes_per_second <= 0:
        return 0
    seconds = data_bytes / bytes_per_second
    return max(1, math.ceil(seconds))
