"""Conversation repository with race-free lookup-or-create."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from .base import BaseRepository
from ..database import Conversation

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation operations."""

    async def get_by_persona(self, persona_id: int) -> Optional[Conversation]:
        """Get the conversation bound to a persona."""
        result = await self.session.execute(
            select(Conversation).where(Conversation.persona_id == persona_id)
        )
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: int) -> List[Conversation]:
        """Get user's conversations, most recently active first."""
        result = await self.session.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        )
        return list(result.scalars().all())

    async def get_or_create(self, user_id: int, persona_id: int) -> Conversation:
        """
        Return the persona's conversation, creating it if needed.

        Relies on the unique persona_id constraint: concurrent callers both
        attempt the insert, the loser's insert is a no-op and both read back
        the first row.
        """
        dialect = self._dialect_name()
        insert_fn = _INSERT_BY_DIALECT.get(dialect)
        if insert_fn is None:
            raise NotImplementedError(f"Conversation upsert is not supported on {dialect}")
        now = datetime.utcnow()
        stmt = (
            insert_fn(Conversation)
            .values(
                user_id=user_id,
                persona_id=persona_id,
                last_message_at=now,
                created_at=now,
            )
            .on_conflict_do_nothing(index_elements=["persona_id"])
        )
        await self.session.execute(stmt)

        conversation = await self.get_by_persona(persona_id)
        if conversation is None:
            raise RuntimeError(f"Conversation for persona {persona_id} vanished after upsert")
        return conversation

    async def set_last_message_at(self, conversation_id: int, timestamp: datetime) -> bool:
        """Set last_message_at. Returns False if the conversation does not exist."""
        result = await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_at=timestamp)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0
