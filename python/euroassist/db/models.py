"""SQLAlchemy ORM models for EuroAssist.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are portable (PostgreSQL in deployment, SQLite for local runs
and tests), so ids and timestamps are assigned on the Python side.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utcnow() -> datetime:
    """Current UTC time at microsecond resolution; orders messages within a chat."""
    return datetime.now(UTC)


# =============================================================================
# Enums
# =============================================================================


class MessageRole(str, PyEnum):
    """Author of a chat message."""

    user = "user"
    assistant = "assistant"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    Emails are stored lower-cased; uniqueness is enforced by the database.
    password_hash is NULL for users reconciled from a federated login.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    chats: Mapped[list["Chat"]] = relationship(
        "Chat", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True
    )
    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Chat(Base):
    """Chat model - a titled thread of messages owned by one user."""

    __tablename__ = "chats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(title) > 0", name="ck_chats_title_not_empty"),
        Index("ix_chats_user_id_updated_at", "user_id", "updated_at"),
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="chats")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )


class Message(Base):
    """Message model - a single immutable turn in a chat."""

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    chat_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('user', 'assistant')",
            name="ck_messages_role",
        ),
        Index("ix_messages_chat_id_created_at", "chat_id", "created_at"),
    )

    # Relationships
    chat: Mapped["Chat"] = relationship("Chat", back_populates="messages")


class UserSession(Base):
    """Server-side login session.

    The session cookie carries a signed reference to `sid`; `sess` holds the
    session payload (at least the user id). Rows past `expire` are treated as
    absent.
    """

    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sess: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    expire: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_sessions_expire", "expire"),)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sessions")
