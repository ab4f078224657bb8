"""Repository layer for data access."""

from .base import BaseRepository
from .user_repository import UserRepository
from .persona_repository import PersonaRepository
from .conversation_repository import ConversationRepository
from .message_repository import MessageRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PersonaRepository",
    "ConversationRepository",
    "MessageRepository",
]
