"""Conversation and message schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .persona import PersonaResponse


class DeliveryStatus(str, Enum):
    """Message delivery status, only ever escalates."""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def escalates_from(self) -> List["DeliveryStatus"]:
        """Statuses that may escalate to this one."""
        return list(_STATUS_ORDER[: self.rank])


_STATUS_ORDER = (DeliveryStatus.SENT, DeliveryStatus.DELIVERED, DeliveryStatus.READ)


class DeliveryVia(str, Enum):
    """Channel a message reached the user through."""
    IN_APP = "in-app"
    OUT_OF_BAND = "out-of-band"


class VoiceClip(BaseModel):
    """A synthesized voice rendering of a message."""
    url: str
    duration_seconds: int = Field(..., ge=0)


class MessageResponse(BaseModel):
    """Schema for message response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    content: str
    is_from_persona: bool
    sent_at: datetime
    delivery_status: DeliveryStatus
    delivered_via: DeliveryVia
    has_voice: bool = False
    voice_url: Optional[str] = None
    voice_duration: Optional[int] = None


class ConversationResponse(BaseModel):
    """Schema for conversation response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    persona_id: int
    last_message_at: datetime
    created_at: datetime


class ConversationDetailResponse(BaseModel):
    """Conversation with its persona and full ledger."""
    conversation: ConversationResponse
    persona: PersonaResponse
    messages: List[MessageResponse]


class SendMessageRequest(BaseModel):
    """Schema for sending a message to a persona."""
    content: str = Field(..., min_length=1, max_length=10000)


class SendMessageResponse(BaseModel):
    """The user's message and the persona's reply."""
    user_message: MessageResponse
    ai_message: MessageResponse


class CheckWhatsAppRequest(BaseModel):
    """WhatsApp availability check request."""
    phone_number: str = Field(..., min_length=10)


class CheckWhatsAppResponse(BaseModel):
    """WhatsApp availability check result."""
    phone_number: str
    available: bool


class UsageResponse(BaseModel):
    """Current generation quota state."""
    api_usage: int
    usage_limit: int
    remaining: int
