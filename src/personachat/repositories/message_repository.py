"""Message repository for conversation ledgers."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, func

from .base import BaseRepository
from ..database import Message
from ..schemas.chat import DeliveryStatus, DeliveryVia, VoiceClip


class MessageRepository(BaseRepository[Message]):
    """Repository for Message operations."""

    async def get_conversation_messages(self, conversation_id: int) -> List[Message]:
        """Get all messages of a conversation in ledger order."""
        result = await self.session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def latest_sent_at(self, conversation_id: int) -> Optional[datetime]:
        """Timestamp of the newest message in a conversation."""
        result = await self.session.execute(
            select(func.max(Message.sent_at)).where(
                Message.conversation_id == conversation_id
            )
        )
        return result.scalar_one_or_none()

    async def escalate_status(
        self,
        message_id: int,
        status: DeliveryStatus,
        via: Optional[DeliveryVia] = None,
    ) -> bool:
        """
        Move a message's delivery status forward.

        The UPDATE only matches rows whose status is strictly lower, so it
        never moves backward and repeated calls are no-ops. Returns True if
        the row changed.
        """
        values = {"delivery_status": status.value}
        if via is not None:
            values["delivered_via"] = via.value

        result = await self.session.execute(
            update(Message)
            .where(
                Message.id == message_id,
                Message.delivery_status.in_([s.value for s in status.escalates_from()]),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def set_voice(self, message_id: int, voice: Optional[VoiceClip]) -> bool:
        """Set or clear the voice triple together."""
        if voice is None:
            values = {"has_voice": False, "voice_url": None, "voice_duration": None}
        else:
            values = {
                "has_voice": True,
                "voice_url": voice.url,
                "voice_duration": voice.duration_seconds,
            }
        result = await self.session.execute(
            update(Message)
            .where(Message.id == message_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0
