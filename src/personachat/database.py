"""Database models and connection for PersonaChat."""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, AsyncGenerator

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)

from .config import settings


def create_engine(url: str):
    """Create an async engine for the given URL."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def create_session_maker(bind) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine(settings.DATABASE_URL)
async_session_maker = create_session_maker(engine)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """User account with generation quota."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("api_usage >= 0", name="ck_users_api_usage_non_negative"),
        CheckConstraint("usage_limit >= 0", name="ck_users_usage_limit_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    # Opaque to this service (password hash, Google id, ...)
    auth_identity: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)

    api_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    usage_limit: Mapped[int] = mapped_column(
        Integer, default=settings.DEFAULT_USAGE_LIMIT, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    personas: Mapped[list["Persona"]] = relationship(
        "Persona", back_populates="user", cascade="all, delete-orphan"
    )


class Persona(Base):
    """User-owned generation profile."""

    __tablename__ = "personas"
    __table_args__ = (
        CheckConstraint(
            "NOT whatsapp_enabled OR whatsapp_number IS NOT NULL",
            name="ck_personas_whatsapp_addressing",
        ),
        Index("ix_personas_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    tagline: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    avatar_icon: Mapped[str] = mapped_column(String(50), default="face", nullable=False)

    # Validated through schemas.PersonalityTraits before it lands here
    traits: Mapped[dict] = mapped_column(JSON, nullable=False)
    interests: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    messaging_preference: Mapped[str] = mapped_column(
        String(20), default="in-app", nullable=False
    )
    # often, daily, weekly, never
    message_frequency: Mapped[str] = mapped_column(
        String(20), default="daily", nullable=False
    )
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    whatsapp_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="personas")


class Conversation(Base):
    """The single conversation between a user and one of their personas."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    persona_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("personas.id", ondelete="CASCADE"),
        unique=True, nullable=False
    )
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan",
        order_by="Message.sent_at"
    )


class Message(Base):
    """Append-only ledger entry."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "(NOT has_voice AND voice_url IS NULL AND voice_duration IS NULL) OR "
            "(has_voice AND voice_url IS NOT NULL AND voice_duration IS NOT NULL)",
            name="ck_messages_voice_triple",
        ),
        Index("ix_messages_conversation_sent_at", "conversation_id", "sent_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_from_persona: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    # sent, delivered, read
    delivery_status: Mapped[str] = mapped_column(
        String(20), default="sent", nullable=False
    )
    # in-app, out-of-band
    delivered_via: Mapped[str] = mapped_column(
        String(20), default="in-app", nullable=False
    )

    has_voice: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voice_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    voice_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )


async def init_db(bind=None):
    """Initialize database tables."""
    bind = bind or engine
    database = bind.url.database
    if bind.url.get_backend_name() == "sqlite" and database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_session(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session as async context manager."""
    async with (session_maker or async_session_maker)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
