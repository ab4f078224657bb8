"""Dependency injection for FastAPI endpoints."""

from fastapi import Depends, Header, HTTPException, Request, status

from ..database import User, get_session
from ..delivery import GreenApiChannel
from ..generation import OpenAIContentGenerator
from ..repositories import UserRepository
from ..services import ChatService, UsageTracker


def get_session_maker(request: Request):
    """Session factory configured on the app (None means the default)."""
    return getattr(request.app.state, "session_maker", None)


def get_generator(request: Request):
    generator = getattr(request.app.state, "generator", None)
    return generator or OpenAIContentGenerator()


def get_channel(request: Request):
    channel = getattr(request.app.state, "channel", None)
    return channel or GreenApiChannel()


async def get_chat_service(
    session_maker=Depends(get_session_maker),
    generator=Depends(get_generator),
    channel=Depends(get_channel),
) -> ChatService:
    """Get ChatService instance."""
    return ChatService(generator, channel, session_maker=session_maker)


async def get_usage_tracker(session_maker=Depends(get_session_maker)) -> UsageTracker:
    """Get UsageTracker instance."""
    return UsageTracker(session_maker)


async def get_current_user(
    x_user_id: int = Header(..., alias="X-User-Id"),
    session_maker=Depends(get_session_maker),
) -> User:
    """
    Resolve the calling user.

    Identity is established upstream; this service only trusts the
    X-User-Id header set by the auth layer.

    Raises:
        HTTPException: If user not found
    """
    async with get_session(session_maker) as session:
        user = await UserRepository(User, session).get(x_user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user
