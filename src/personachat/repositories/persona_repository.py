"""Persona repository."""

from typing import List

from sqlalchemy import select

from .base import BaseRepository
from ..database import Persona


class PersonaRepository(BaseRepository[Persona]):
    """Repository for Persona operations."""

    async def get_active_personas(self) -> List[Persona]:
        """Get every active persona across all users."""
        result = await self.session.execute(
            select(Persona)
            .where(Persona.is_active == True)  # noqa: E712
            .order_by(Persona.id)
        )
        return list(result.scalars().all())
