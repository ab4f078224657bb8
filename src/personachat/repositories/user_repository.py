"""User repository with quota counters."""

from typing import Optional

from sqlalchemy import select, update

from .base import BaseRepository
from ..database import User


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    async def increment_api_usage(self, user_id: int, amount: int = 1) -> Optional[int]:
        """
        Add ``amount`` to the user's usage counter in a single UPDATE.

        Returns the new counter value, or None if the user does not exist.
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(api_usage=User.api_usage + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        current = await self.session.execute(
            select(User.api_usage).where(User.id == user_id)
        )
        return current.scalar_one()

    async def reset_all_api_usage(self) -> int:
        """Zero every user's usage counter. Returns count of users touched."""
        result = await self.session.execute(
            update(User)
            .where(User.api_usage != 0)
            .values(api_usage=0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
