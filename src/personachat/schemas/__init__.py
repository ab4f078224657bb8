"""Pydantic schemas for PersonaChat."""

from .persona import (
    MessageFrequency,
    PersonalityTraits,
    PersonaSettings,
    PersonaResponse,
)
from .chat import (
    DeliveryStatus,
    DeliveryVia,
    VoiceClip,
    MessageResponse,
    ConversationResponse,
    ConversationDetailResponse,
    SendMessageRequest,
    SendMessageResponse,
    CheckWhatsAppRequest,
    CheckWhatsAppResponse,
    UsageResponse,
)

__all__ = [
    "MessageFrequency",
    "PersonalityTraits",
    "PersonaSettings",
    "PersonaResponse",
    "DeliveryStatus",
    "DeliveryVia",
    "VoiceClip",
    "MessageResponse",
    "ConversationResponse",
    "ConversationDetailResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    "CheckWhatsAppRequest",
    "CheckWhatsAppResponse",
    "UsageResponse",
]
