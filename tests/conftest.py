"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime
from typing import List, Optional

import pytest

from personachat.database import (
    Persona,
    User,
    create_engine,
    create_session_maker,
    get_session,
    init_db,
)
from personachat.schemas.chat import VoiceClip


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine, one database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def make_user(session_maker):
    """Factory that inserts a user."""
    counter = {"n": 0}

    async def _make_user(api_usage: int = 0, usage_limit: int = 100, **kwargs) -> User:
        counter["n"] += 1
        async with get_session(session_maker) as session:
            user = User(
                username=kwargs.pop("username", f"user{counter['n']}"),
                api_usage=api_usage,
                usage_limit=usage_limit,
                **kwargs,
            )
            session.add(user)
            await session.flush()
            await session.refresh(user)
            return user

    return _make_user


@pytest.fixture
def make_persona(session_maker):
    """Factory that inserts an active persona."""

    async def _make_persona(user_id: int, **kwargs) -> Persona:
        values = {
            "name": "Nova",
            "tagline": "a curious tech enthusiast",
            "traits": {"extroversion": 8, "emotional": 6, "playfulness": 7, "adventurous": 3},
            "interests": ["Technology", "AI"],
            "is_active": True,
            "message_frequency": "daily",
        }
        values.update(kwargs)
        async with get_session(session_maker) as session:
            persona = Persona(user_id=user_id, **values)
            session.add(persona)
            await session.flush()
            await session.refresh(persona)
            return persona

    return _make_persona


# ============================================================================
# Fake Capabilities
# ============================================================================

class FakeGenerator:
    """Content generator returning canned text and recording calls."""

    def __init__(
        self,
        text: str = "Hello from your persona!",
        reply: str = "Nice to hear from you!",
        voice: Optional[VoiceClip] = None,
        error: Optional[Exception] = None,
        voice_error: Optional[Exception] = None,
        fail_for: Optional[set] = None,
    ):
        self.text = text
        self.reply = reply
        self.voice = voice
        self.error = error
        self.voice_error = voice_error
        self.fail_for = fail_for or set()
        self.proactive_calls: List[int] = []
        self.reply_calls: List[str] = []
        self.voice_calls: List[str] = []
        self.histories: List[list] = []

    async def generate_proactive_message(self, persona, history) -> str:
        self.proactive_calls.append(persona.id)
        self.histories.append(list(history))
        if persona.id in self.fail_for:
            raise RuntimeError(f"boom for persona {persona.id}")
        if self.error:
            raise self.error
        return self.text

    async def generate_reply(self, persona, history, user_message) -> str:
        self.reply_calls.append(user_message)
        self.histories.append(list(history))
        if self.error:
            raise self.error
        return self.reply

    async def synthesize_voice(self, text, persona) -> Optional[VoiceClip]:
        self.voice_calls.append(text)
        if self.voice_error:
            raise self.voice_error
        return self.voice


class FakeChannel:
    """Delivery channel with a fixed outcome."""

    def __init__(
        self,
        result: bool = True,
        available: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.result = result
        self.available = available
        self.error = error
        self.delay = delay
        self.relayed: List[tuple] = []

    async def relay(self, address: str, text: str) -> bool:
        self.relayed.append((address, text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result

    async def check_availability(self, phone_number: str) -> bool:
        return self.available


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def channel():
    return FakeChannel()


# ============================================================================
# Clock
# ============================================================================

# 2024-01-01 was a Monday
MONDAY_0900 = datetime(2024, 1, 1, 9, 0)
MONDAY_1000 = datetime(2024, 1, 1, 10, 0)
TUESDAY_0900 = datetime(2024, 1, 2, 9, 0)
