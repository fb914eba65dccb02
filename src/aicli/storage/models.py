"""
ORM models for users, sessions and chat history.

`user` and `session` belong to the authorization server and are only read
here. Column names follow the server's camelCase convention so both sides
can share one database.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class ConversationMode(str, Enum):
    CHAT = "chat"
    TOOL = "tool"
    AGENT = "agent"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sessions: Mapped[List["Session"]] = relationship(back_populates="user")
    conversations: Mapped[List["Conversation"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Session(Base):
    __tablename__ = "session"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    token: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    user_id: Mapped[str] = mapped_column("userId", ForeignKey("user.id", ondelete="CASCADE"))
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        "expiresAt", DateTime(timezone=True), nullable=True
    )

    user: Mapped[User] = relationship(back_populates="sessions")


class Conversation(Base):
    __tablename__ = "conversation"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        "userId", ForeignKey("user.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mode: Mapped[str] = mapped_column(String(16), default=ConversationMode.CHAT.value)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    user: Mapped[User] = relationship(back_populates="conversations")
    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by=lambda: [Message.created_at, Message.seq],
    )

    @property
    def display_title(self) -> str:
        return self.title or f"New {self.mode} conversation"

    def __repr__(self) -> str:
        return f"<Conversation {self.id} ({self.mode})>"


class Message(Base):
    __tablename__ = "message"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(
        "conversationId", ForeignKey("conversation.id", ondelete="CASCADE"), index=True
    )
    # Position within the conversation, breaks created_at ties
    seq: Mapped[int] = mapped_column(Integer, default=0)
    role: Mapped[str] = mapped_column(String(16))
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), default=_utcnow
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")
