"""Persona schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MessageFrequency(str, Enum):
    """How often a persona reaches out on its own."""
    OFTEN = "often"
    DAILY = "daily"
    WEEKLY = "weekly"
    NEVER = "never"


class PersonalityTraits(BaseModel):
    """Fixed-shape personality profile, every score in 0-10."""
    model_config = ConfigDict(extra="forbid")

    extroversion: int = Field(5, ge=0, le=10)
    emotional: int = Field(5, ge=0, le=10)
    playfulness: int = Field(5, ge=0, le=10)
    adventurous: int = Field(5, ge=0, le=10)


class PersonaSettings(BaseModel):
    """
    Persona fields as accepted at the mutation boundary.

    Rejects out-of-range traits, unknown frequencies and WhatsApp delivery
    without a number.
    """
    name: str = Field(..., min_length=1, max_length=100)
    tagline: str = Field("", max_length=255)
    avatar_icon: str = "face"
    traits: PersonalityTraits = Field(default_factory=PersonalityTraits)
    interests: List[str] = Field(default_factory=list)
    is_active: bool = False
    messaging_preference: str = "in-app"
    message_frequency: MessageFrequency = MessageFrequency.DAILY
    whatsapp_enabled: bool = False
    whatsapp_number: Optional[str] = Field(None, min_length=10, max_length=32)

    @model_validator(mode="after")
    def _require_number_for_whatsapp(self) -> "PersonaSettings":
        if self.whatsapp_enabled and not self.whatsapp_number:
            raise ValueError("whatsapp_number is required when whatsapp_enabled is set")
        return self

    def to_columns(self) -> dict:
        """Flatten into keyword arguments for the Persona model."""
        data = self.model_dump()
        data["message_frequency"] = self.message_frequency.value
        return data


class PersonaResponse(BaseModel):
    """Persona response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    tagline: str
    avatar_icon: str
    traits: PersonalityTraits
    interests: List[str]
    is_active: bool
    message_frequency: MessageFrequency
    whatsapp_enabled: bool
    whatsapp_number: Optional[str] = None
    created_at: datetime
