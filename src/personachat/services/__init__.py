"""Business logic services."""

from .usage_tracker import UsageTracker
from .conversation_ledger import ConversationLedger
from .chat_service import ChatService

__all__ = [
    "UsageTracker",
    "ConversationLedger",
    "ChatService",
]
