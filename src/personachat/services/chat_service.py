"""Interactive chat: user writes, persona replies."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..core.exceptions import (
    CapabilityTimeoutError,
    GenerationQuotaExceeded,
    GenerationUnavailable,
    ResourceAccessDeniedError,
    ResourceNotFoundError,
    UsageLimitExceededError,
)
from ..core.resilience import call_with_timeout
from ..database import Conversation, Message, Persona, get_session
from ..delivery import DeliveryChannel
from ..generation import ContentGenerator, fallback_message
from ..repositories import PersonaRepository
from .conversation_ledger import ConversationLedger
from .usage_tracker import UsageTracker

logger = logging.getLogger(__name__)


class ChatService:
    """Business logic for the reactive chat path."""

    def __init__(
        self,
        generator: ContentGenerator,
        channel: DeliveryChannel,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        ledger: Optional[ConversationLedger] = None,
        usage: Optional[UsageTracker] = None,
    ):
        self.generator = generator
        self.channel = channel
        self._session_maker = session_maker
        self.ledger = ledger or ConversationLedger(session_maker)
        self.usage = usage or UsageTracker(session_maker)

    async def get_persona(self, persona_id: int, user_id: int) -> Persona:
        """Get persona by ID, owner only."""
        async with get_session(self._session_maker) as session:
            persona = await PersonaRepository(Persona, session).get(persona_id)

        if not persona:
            raise ResourceNotFoundError("Persona", persona_id)
        if persona.user_id != user_id:
            raise ResourceAccessDeniedError("You don't have access to this persona")
        return persona

    async def get_conversation(self, conversation_id: int, user_id: int) -> Conversation:
        """Get conversation by ID, owner only."""
        conversation = await self.ledger.get_conversation(conversation_id)
        if not conversation:
            raise ResourceNotFoundError("Conversation", conversation_id)
        if conversation.user_id != user_id:
            raise ResourceAccessDeniedError("You don't have access to this conversation")
        return conversation

    async def get_message(self, message_id: int, user_id: int) -> Message:
        """Get message by ID if it sits in one of the user's conversations."""
        message = await self.ledger.get_message(message_id)
        if not message:
            raise ResourceNotFoundError("Message", message_id)

        conversation = await self.ledger.get_conversation(message.conversation_id)
        if not conversation or conversation.user_id != user_id:
            raise ResourceAccessDeniedError("You don't have access to this message")
        return message

    async def list_conversations(self, user_id: int) -> List[Conversation]:
        """User's conversations, most recently active first."""
        return await self.ledger.list_conversations(user_id)

    async def list_conversation_messages(
        self, conversation_id: int, user_id: int
    ) -> List[Message]:
        """Ledger of one of the user's conversations, oldest first."""
        conversation = await self.get_conversation(conversation_id, user_id)
        return await self.ledger.list_messages(conversation.id)

    async def open_conversation(
        self, persona_id: int, user_id: int
    ) -> Tuple[Persona, Conversation, list[Message]]:
        """Persona, its conversation (created on first open) and the ledger."""
        persona = await self.get_persona(persona_id, user_id)
        conversation = await self.ledger.get_or_create_conversation(user_id, persona.id)
        messages = await self.ledger.list_messages(conversation.id)
        return persona, conversation, messages

    async def send_user_message(
        self, persona_id: int, user_id: int, content: str
    ) -> Tuple[Message, Message]:
        """
        Record the user's message and produce the persona's reply.

        Every recorded user message gets a reply: when the model cannot
        answer, a template reply is recorded instead.

        Raises:
            ResourceNotFoundError: If the persona does not exist
            ResourceAccessDeniedError: If the persona belongs to someone else
            UsageLimitExceededError: If the user's quota is used up
        """
        persona = await self.get_persona(persona_id, user_id)

        if not await self.usage.check_quota(user_id):
            raise UsageLimitExceededError(user_id)

        conversation = await self.ledger.get_or_create_conversation(user_id, persona.id)
        user_message = await self.ledger.append_message(
            conversation.id, content, is_from_persona=False
        )
        await self.ledger.touch_last_message(conversation.id, at=user_message.sent_at)

        history = await self.ledger.list_messages(conversation.id)
        # The prompt adds the user's text itself
        history = [m for m in history if m.id != user_message.id]
        reply, generated = await self._generate_reply(persona, history, content)
        if generated:
            await self.usage.increment_usage(user_id, 1)

        ai_message = await self.ledger.append_message(
            conversation.id, reply, is_from_persona=True
        )
        await self.ledger.touch_last_message(conversation.id, at=ai_message.sent_at)

        if persona.whatsapp_enabled and persona.whatsapp_number:
            if await self._relay(persona.whatsapp_number, reply):
                await self.ledger.mark_delivered(ai_message.id)
                ai_message = await self.ledger.get_message(ai_message.id) or ai_message

        return user_message, ai_message

    async def _generate_reply(
        self, persona: Persona, history: List[Message], content: str
    ) -> Tuple[str, bool]:
        """Model reply, or template reply when the model fails. Second item: model used."""
        try:
            reply = await call_with_timeout(
                "generation", self.generator.generate_reply, persona, history, content,
                timeout=settings.GENERATION_TIMEOUT,
            )
        except (GenerationUnavailable, GenerationQuotaExceeded, CapabilityTimeoutError) as exc:
            logger.warning(f"Using fallback reply for persona {persona.id}: {exc}")
            return fallback_message(persona, user_message=content), False
        except Exception:
            logger.error(f"Reply generation for persona {persona.id} failed", exc_info=True)
            return fallback_message(persona, user_message=content), False
        return reply, True

    async def _relay(self, address: str, text: str) -> bool:
        try:
            return await call_with_timeout(
                "delivery", self.channel.relay, address, text,
                timeout=settings.DELIVERY_TIMEOUT,
            )
        except CapabilityTimeoutError as exc:
            logger.warning(f"Relay to {address} not confirmed: {exc}")
            return False

    async def delete_voice(self, message_id: int, user_id: int) -> Message:
        """Remove the voice rendering of a message in one of the user's conversations."""
        message = await self.get_message(message_id, user_id)
        await self.ledger.clear_voice(message.id)
        return await self.ledger.get_message(message.id)

    async def mark_read(self, message_id: int, user_id: int) -> Message:
        """Acknowledge a message as read. Repeating it is a no-op."""
        message = await self.get_message(message_id, user_id)
        await self.ledger.mark_read(message.id)
        return await self.ledger.get_message(message.id)
