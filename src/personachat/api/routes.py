"""Conversation API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status

from ..database import User
from ..schemas import (
    CheckWhatsAppRequest,
    CheckWhatsAppResponse,
    ConversationDetailResponse,
    ConversationResponse,
    MessageResponse,
    PersonaResponse,
    SendMessageRequest,
    SendMessageResponse,
    UsageResponse,
)
from ..services import ChatService, UsageTracker
from .dependencies import get_channel, get_chat_service, get_current_user, get_usage_tracker


router = APIRouter(prefix="/api", tags=["Conversations"])


@router.get("/conversations", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """List the user's conversations, most recently active first."""
    conversations = await chat_service.list_conversations(current_user.id)
    return [ConversationResponse.model_validate(c) for c in conversations]


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_conversation_messages(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Get all messages of a conversation, oldest first."""
    messages = await chat_service.list_conversation_messages(conversation_id, current_user.id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.get("/personas/{persona_id}/conversation", response_model=ConversationDetailResponse)
async def get_conversation(
    persona_id: int,
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Get the conversation with a persona.

    Creates the conversation on first access.
    """
    persona, conversation, messages = await chat_service.open_conversation(
        persona_id, current_user.id
    )
    return ConversationDetailResponse(
        conversation=ConversationResponse.model_validate(conversation),
        persona=PersonaResponse.model_validate(persona),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.post(
    "/personas/{persona_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    persona_id: int,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send a message to a persona and get its reply."""
    user_message, ai_message = await chat_service.send_user_message(
        persona_id, current_user.id, request.content
    )
    return SendMessageResponse(
        user_message=MessageResponse.model_validate(user_message),
        ai_message=MessageResponse.model_validate(ai_message),
    )


@router.delete("/messages/{message_id}/voice", response_model=MessageResponse)
async def delete_voice(
    message_id: int,
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Remove a message's voice audio, keeping the text."""
    message = await chat_service.delete_voice(message_id, current_user.id)
    return MessageResponse.model_validate(message)


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    message_id: int,
    current_user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Acknowledge a message as read."""
    message = await chat_service.mark_read(message_id, current_user.id)
    return MessageResponse.model_validate(message)


@router.post("/check-whatsapp", response_model=CheckWhatsAppResponse)
async def check_whatsapp(
    request: CheckWhatsAppRequest,
    current_user: User = Depends(get_current_user),
    channel=Depends(get_channel),
):
    """Check whether a phone number can receive WhatsApp messages."""
    available = await channel.check_availability(request.phone_number)
    return CheckWhatsAppResponse(phone_number=request.phone_number, available=available)


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    current_user: User = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
):
    """Current user's generation quota."""
    return UsageResponse(**await usage.get_usage(current_user.id))
