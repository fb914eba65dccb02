"""
Conversation store - create, fetch and update conversations and messages.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload, sessionmaker

from aicli.storage.models import (
    Conversation,
    ConversationMode,
    Message,
    MessageRole,
    Session,
    User,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50


def title_from_input(user_input: str) -> str:
    """First 50 characters of the input, with an ellipsis when truncated."""
    title = user_input[:TITLE_MAX_LENGTH]
    if len(user_input) > TITLE_MAX_LENGTH:
        title += "..."
    return title


class ChatService:
    """Conversation and message persistence over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def find_user_by_token(self, access_token: str) -> Optional[User]:
        """Resolve the user owning a session with this token."""
        with self._sessions() as session:
            stmt = select(User).join(Session).where(Session.token == access_token).limit(1)
            return session.scalars(stmt).first()

    def create_conversation(
        self,
        user_id: str,
        mode: ConversationMode | str = ConversationMode.CHAT,
        title: Optional[str] = None,
    ) -> Conversation:
        mode = ConversationMode(mode)
        with self._sessions() as session:
            conversation = Conversation(user_id=user_id, mode=mode.value, title=title)
            session.add(conversation)
            session.commit()
            session.refresh(conversation, attribute_names=["messages"])
            logger.debug(f"Created {mode.value} conversation {conversation.id}")
            return conversation

    def get_or_create_conversation(
        self,
        user_id: str,
        conversation_id: Optional[str] = None,
        mode: ConversationMode | str = ConversationMode.CHAT,
    ) -> Conversation:
        """Load the user's conversation (with messages) or start a new one."""
        if conversation_id:
            with self._sessions() as session:
                stmt = (
                    select(Conversation)
                    .options(selectinload(Conversation.messages))
                    .where(Conversation.id == conversation_id, Conversation.user_id == user_id)
                )
                conversation = session.scalars(stmt).first()
            if conversation is not None:
                return conversation
            logger.info(f"Conversation {conversation_id} not found for user, starting a new one")

        return self.create_conversation(user_id, mode)

    def add_message(
        self,
        conversation_id: str,
        role: MessageRole | str,
        content: Any,
    ) -> Message:
        """Append a message. Non-string content is stored as JSON."""
        role = MessageRole(role)
        content_str = content if isinstance(content, str) else json.dumps(content)

        with self._sessions() as session:
            last = session.scalar(
                select(func.max(Message.seq)).where(Message.conversation_id == conversation_id)
            )
            message = Message(
                conversation_id=conversation_id,
                role=role.value,
                content=content_str,
                seq=(last or 0) + 1,
            )
            session.add(message)
            conversation = session.get(Conversation, conversation_id)
            if conversation is not None:
                conversation.updated_at = datetime.now(timezone.utc)
            session.commit()
            return message

    def get_messages(self, conversation_id: str) -> List[Message]:
        with self._sessions() as session:
            stmt = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at, Message.seq)
            )
            return list(session.scalars(stmt))

    def count_messages(self, conversation_id: str) -> int:
        with self._sessions() as session:
            stmt = select(func.count()).select_from(Message).where(
                Message.conversation_id == conversation_id
            )
            return session.scalar(stmt) or 0

    def get_user_conversations(self, user_id: str) -> List[Conversation]:
        """All conversations of a user, most recently updated first."""
        with self._sessions() as session:
            stmt = (
                select(Conversation)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.updated_at.desc())
            )
            return list(session.scalars(stmt))

    def delete_conversation(self, conversation_id: str, user_id: str) -> int:
        """Delete a conversation owned by the user. Returns rows deleted."""
        with self._sessions() as session:
            owned = session.scalar(
                select(Conversation.id).where(
                    Conversation.id == conversation_id,
                    Conversation.user_id == user_id,
                )
            )
            if owned is None:
                return 0
            session.execute(delete(Message).where(Message.conversation_id == conversation_id))
            session.execute(delete(Conversation).where(Conversation.id == conversation_id))
            session.commit()
            return 1

    def update_title(self, conversation_id: str, title: str) -> None:
        with self._sessions() as session:
            conversation = session.get(Conversation, conversation_id)
            if conversation is None:
                return
            conversation.title = title
            session.commit()

    def update_title_if_first(self, conversation_id: str, message_count: int, user_input: str) -> bool:
        """Title the conversation from its first user message.

        Returns True if the title was set.
        """
        if message_count != 1:
            return False
        self.update_title(conversation_id, title_from_input(user_input))
        return True

    @staticmethod
    def format_messages_for_ai(messages: List[Message]) -> List[Dict[str, str]]:
        return [
            {
                "role": msg.role,
                "content": msg.content if isinstance(msg.content, str) else json.dumps(msg.content),
            }
            for msg in messages
        ]
