"""Per-user generation quota accounting."""

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import InvalidInputError, ResourceNotFoundError
from ..database import User, get_session
from ..repositories import UserRepository

logger = logging.getLogger(__name__)


class UsageTracker:
    """
    Gate and meter generation calls against each user's usage limit.

    Shared by the scheduled dispatch path and the interactive chat path.
    The counter is only ever changed through a single UPDATE statement, so
    concurrent increments from both paths cannot lose updates.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker

    async def check_quota(self, user_id: int) -> bool:
        """
        True iff the user may still generate (api_usage < usage_limit).

        Unknown users have no quota.
        """
        async with get_session(self._session_maker) as session:
            user = await UserRepository(User, session).get(user_id)

        if user is None:
            logger.warning(f"Quota check for unknown user {user_id}")
            return False
        return user.api_usage < user.usage_limit

    async def increment_usage(self, user_id: int, amount: int = 1) -> int:
        """
        Atomically add ``amount`` to the user's usage counter.

        Returns:
            The counter value after the increment

        Raises:
            InvalidInputError: If amount is negative
            ResourceNotFoundError: If the user does not exist
        """
        if amount < 0:
            raise InvalidInputError("Usage increment must be non-negative")

        async with get_session(self._session_maker) as session:
            new_usage = await UserRepository(User, session).increment_api_usage(user_id, amount)

        if new_usage is None:
            raise ResourceNotFoundError("User", user_id)

        logger.debug(f"Usage for user {user_id} is now {new_usage}")
        return new_usage

    async def reset_all_usage(self) -> int:
        """Set every user's usage counter back to zero. Returns count reset."""
        async with get_session(self._session_maker) as session:
            count = await UserRepository(User, session).reset_all_api_usage()

        logger.info(f"Reset API usage for {count} users")
        return count

    async def get_usage(self, user_id: int) -> Dict:
        """
        Get the user's quota state.

        Raises:
            ResourceNotFoundError: If the user does not exist
        """
        async with get_session(self._session_maker) as session:
            user = await UserRepository(User, session).get(user_id)

        if user is None:
            raise ResourceNotFoundError("User", user_id)

        return {
            "api_usage": user.api_usage,
            "usage_limit": user.usage_limit,
            "remaining": max(0, user.usage_limit - user.api_usage),
        }
