"""
API endpoint tests.
Run with: pytest tests/integration/test_api.py -v
"""

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import FakeChannel, FakeGenerator
from personachat.api import create_app
from personachat.core.exceptions import GenerationQuotaExceeded
from personachat.schemas.chat import VoiceClip
from personachat.services import ConversationLedger


@pytest.fixture
def channel():
    return FakeChannel(result=True, available=True)


@pytest.fixture
def generator():
    return FakeGenerator(reply="Great question!")


@pytest.fixture
async def client(session_maker, generator, channel):
    """Async HTTP client against an app wired to the test database."""
    app = create_app(session_maker=session_maker, generator=generator, channel=channel)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def owner(make_user):
    return await make_user(usage_limit=10)


@pytest.fixture
async def persona(owner, make_persona):
    return await make_persona(owner.id)


def _auth(user):
    return {"X-User-Id": str(user.id)}


async def test_missing_user_header(client, persona):
    response = await client.get(f"/api/personas/{persona.id}/conversation")
    assert response.status_code == 422


async def test_unknown_user(client, persona):
    response = await client.get(
        f"/api/personas/{persona.id}/conversation", headers={"X-User-Id": "999"}
    )
    assert response.status_code == 401


async def test_get_conversation(client, owner, persona):
    response = await client.get(
        f"/api/personas/{persona.id}/conversation", headers=_auth(owner)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["persona"]["id"] == persona.id
    assert data["persona"]["traits"]["extroversion"] == 8
    assert data["conversation"]["persona_id"] == persona.id
    assert data["messages"] == []


async def test_get_conversation_unknown_persona(client, owner):
    response = await client.get("/api/personas/404/conversation", headers=_auth(owner))

    assert response.status_code == 404
    assert "Persona with id 404" in response.json()["detail"]


async def test_get_conversation_of_other_user(client, make_user, persona):
    intruder = await make_user()
    response = await client.get(
        f"/api/personas/{persona.id}/conversation", headers=_auth(intruder)
    )
    assert response.status_code == 403


async def test_send_message(client, owner, persona, generator):
    response = await client.post(
        f"/api/personas/{persona.id}/messages",
        json={"content": "What are you into lately?"},
        headers=_auth(owner),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user_message"]["content"] == "What are you into lately?"
    assert data["user_message"]["is_from_persona"] is False
    assert data["ai_message"]["content"] == "Great question!"
    assert data["ai_message"]["delivery_status"] == "sent"
    assert data["ai_message"]["delivered_via"] == "in-app"

    conversation = await client.get(
        f"/api/personas/{persona.id}/conversation", headers=_auth(owner)
    )
    contents = [m["content"] for m in conversation.json()["messages"]]
    assert contents == ["What are you into lately?", "Great question!"]

    usage = await client.get("/api/usage", headers=_auth(owner))
    assert usage.json() == {"api_usage": 1, "usage_limit": 10, "remaining": 9}


async def test_send_empty_message_rejected(client, owner, persona):
    response = await client.post(
        f"/api/personas/{persona.id}/messages", json={"content": ""}, headers=_auth(owner)
    )
    assert response.status_code == 422


async def test_send_message_out_of_quota(client, make_user, make_persona):
    user = await make_user(api_usage=3, usage_limit=3)
    persona = await make_persona(user.id)

    response = await client.post(
        f"/api/personas/{persona.id}/messages", json={"content": "hi"}, headers=_auth(user)
    )

    assert response.status_code == 429


async def test_send_message_generation_quota_falls_back(client, owner, persona, generator):
    generator.error = GenerationQuotaExceeded("429")

    response = await client.post(
        f"/api/personas/{persona.id}/messages", json={"content": "hi"}, headers=_auth(owner)
    )

    assert response.status_code == 201
    assert response.json()["ai_message"]["content"]
    usage = await client.get("/api/usage", headers=_auth(owner))
    assert usage.json()["api_usage"] == 0


async def test_delete_voice(client, owner, persona, session_maker):
    ledger = ConversationLedger(session_maker)
    conversation = await ledger.get_or_create_conversation(owner.id, persona.id)
    message = await ledger.append_message(
        conversation.id, "listen to this", is_from_persona=True,
        voice=VoiceClip(url="/voice/clip.wav", duration_seconds=5),
    )

    response = await client.delete(f"/api/messages/{message.id}/voice", headers=_auth(owner))

    assert response.status_code == 200
    data = response.json()
    assert data["content"] == "listen to this"
    assert data["has_voice"] is False
    assert data["voice_url"] is None
    assert data["voice_duration"] is None


async def test_delete_voice_unknown_message(client, owner):
    response = await client.delete("/api/messages/404/voice", headers=_auth(owner))
    assert response.status_code == 404


async def test_check_whatsapp(client, owner, channel):
    response = await client.post(
        "/api/check-whatsapp", json={"phone_number": "+15551234567"}, headers=_auth(owner)
    )

    assert response.status_code == 200
    assert response.json() == {"phone_number": "+15551234567", "available": True}


async def test_check_whatsapp_short_number(client, owner):
    response = await client.post(
        "/api/check-whatsapp", json={"phone_number": "123"}, headers=_auth(owner)
    )
    assert response.status_code == 422


async def test_list_conversations(client, owner, persona, make_user, make_persona):
    other = await make_user()
    foreign = await make_persona(other.id)
    await client.get(f"/api/personas/{persona.id}/conversation", headers=_auth(owner))
    await client.get(f"/api/personas/{foreign.id}/conversation", headers=_auth(other))

    response = await client.get("/api/conversations", headers=_auth(owner))

    assert response.status_code == 200
    assert [c["persona_id"] for c in response.json()] == [persona.id]


async def test_list_conversation_messages(client, owner, persona):
    sent = (await client.post(
        f"/api/personas/{persona.id}/messages", json={"content": "hello"}, headers=_auth(owner)
    )).json()
    conversation_id = sent["user_message"]["conversation_id"]

    response = await client.get(
        f"/api/conversations/{conversation_id}/messages", headers=_auth(owner)
    )

    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["hello", "Great question!"]


async def test_list_conversation_messages_of_other_user(client, owner, persona, make_user):
    opened = (await client.get(
        f"/api/personas/{persona.id}/conversation", headers=_auth(owner)
    )).json()
    intruder = await make_user()

    response = await client.get(
        f"/api/conversations/{opened['conversation']['id']}/messages", headers=_auth(intruder)
    )
    assert response.status_code == 403


async def test_list_messages_unknown_conversation(client, owner):
    response = await client.get("/api/conversations/404/messages", headers=_auth(owner))
    assert response.status_code == 404


async def test_mark_read(client, owner, persona):
    sent = (await client.post(
        f"/api/personas/{persona.id}/messages", json={"content": "hello"}, headers=_auth(owner)
    )).json()
    message_id = sent["ai_message"]["id"]

    response = await client.post(f"/api/messages/{message_id}/read", headers=_auth(owner))

    assert response.status_code == 200
    assert response.json()["delivery_status"] == "read"


async def test_mark_read_unknown_message(client, owner):
    response = await client.post("/api/messages/404/read", headers=_auth(owner))
    assert response.status_code == 404
