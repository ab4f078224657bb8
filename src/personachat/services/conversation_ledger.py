"""Append-only, time-ordered message history per persona."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import InvalidStatusTransitionError, ResourceNotFoundError
from ..database import Conversation, Message, get_session
from ..repositories import ConversationRepository, MessageRepository
from ..schemas.chat import DeliveryStatus, DeliveryVia, VoiceClip

logger = logging.getLogger(__name__)


class ConversationLedger:
    """
    Conversation and message bookkeeping.

    Invariants:
        - one Conversation per persona (unique persona_id + upsert)
        - messages are never deleted or edited; only the delivery status
          (forward only) and the voice triple change after creation
        - send timestamps never decrease within a conversation

    Each operation runs in its own short transaction.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker

    async def get_or_create_conversation(self, user_id: int, persona_id: int) -> Conversation:
        """Return the persona's conversation, creating it on first use."""
        async with get_session(self._session_maker) as session:
            return await ConversationRepository(Conversation, session).get_or_create(
                user_id=user_id, persona_id=persona_id
            )

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        async with get_session(self._session_maker) as session:
            return await ConversationRepository(Conversation, session).get(conversation_id)

    async def list_conversations(self, user_id: int) -> List[Conversation]:
        """User's conversations, most recently active first."""
        async with get_session(self._session_maker) as session:
            return await ConversationRepository(Conversation, session).get_by_user(user_id)

    async def append_message(
        self,
        conversation_id: int,
        content: str,
        is_from_persona: bool,
        voice: Optional[VoiceClip] = None,
        sent_at: Optional[datetime] = None,
    ) -> Message:
        """
        Append a message to the ledger with status "sent" via "in-app".

        The send timestamp defaults to now and is clamped so it never
        precedes the newest message already in the conversation.

        Raises:
            ResourceNotFoundError: If the conversation does not exist
        """
        async with get_session(self._session_maker) as session:
            if await ConversationRepository(Conversation, session).get(conversation_id) is None:
                raise ResourceNotFoundError("Conversation", conversation_id)

            message_repo = MessageRepository(Message, session)
            timestamp = sent_at or datetime.utcnow()
            latest = await message_repo.latest_sent_at(conversation_id)
            if latest is not None and latest > timestamp:
                timestamp = latest

            return await message_repo.create(
                conversation_id=conversation_id,
                content=content,
                is_from_persona=is_from_persona,
                sent_at=timestamp,
                delivery_status=DeliveryStatus.SENT.value,
                delivered_via=DeliveryVia.IN_APP.value,
                has_voice=voice is not None,
                voice_url=voice.url if voice else None,
                voice_duration=voice.duration_seconds if voice else None,
            )

    async def list_messages(self, conversation_id: int) -> List[Message]:
        """All messages of a conversation, oldest first. Recomputed per call."""
        async with get_session(self._session_maker) as session:
            return await MessageRepository(Message, session).get_conversation_messages(
                conversation_id
            )

    async def get_message(self, message_id: int) -> Optional[Message]:
        async with get_session(self._session_maker) as session:
            return await MessageRepository(Message, session).get(message_id)

    async def touch_last_message(
        self,
        conversation_id: int,
        at: Optional[datetime] = None,
    ) -> None:
        """
        Set the conversation's last_message_at (defaults to now).

        Raises:
            ResourceNotFoundError: If the conversation does not exist
        """
        async with get_session(self._session_maker) as session:
            updated = await ConversationRepository(Conversation, session).set_last_message_at(
                conversation_id, at or datetime.utcnow()
            )
        if not updated:
            raise ResourceNotFoundError("Conversation", conversation_id)

    async def mark_delivered(self, message_id: int) -> bool:
        """Escalate sent -> delivered after a confirmed out-of-band relay."""
        async with get_session(self._session_maker) as session:
            changed = await MessageRepository(Message, session).escalate_status(
                message_id, DeliveryStatus.DELIVERED, via=DeliveryVia.OUT_OF_BAND
            )
        if not changed:
            logger.debug(f"Message {message_id} already at or past 'delivered'")
        return changed

    async def escalate_status(self, message_id: int, status: DeliveryStatus) -> bool:
        """
        Move a message forward to ``status``.

        Returns False when the message is already at ``status``.

        Raises:
            ResourceNotFoundError: If the message does not exist
            InvalidStatusTransitionError: If the message is already past ``status``
        """
        async with get_session(self._session_maker) as session:
            message_repo = MessageRepository(Message, session)
            if await message_repo.escalate_status(message_id, status):
                return True

            message = await message_repo.get(message_id)
            if message is None:
                raise ResourceNotFoundError("Message", message_id)
            current = DeliveryStatus(message.delivery_status)
            if current.rank > status.rank:
                raise InvalidStatusTransitionError(message_id, current.value, status.value)
            return False

    async def mark_read(self, message_id: int) -> bool:
        """Escalate sent/delivered -> read."""
        return await self.escalate_status(message_id, DeliveryStatus.READ)

    async def clear_voice(self, message_id: int) -> bool:
        """Drop the voice rendering of a message, keeping its text."""
        async with get_session(self._session_maker) as session:
            return await MessageRepository(Message, session).set_voice(message_id, None)
