"""ai-cli chat history storage."""

from aicli.storage.chat_service import ChatService, title_from_input
from aicli.storage.database import Database
from aicli.storage.models import (
    Base,
    Conversation,
    ConversationMode,
    Message,
    MessageRole,
    Session,
    User,
)

__all__ = [
    "Base",
    "ChatService",
    "Conversation",
    "ConversationMode",
    "Database",
    "Message",
    "MessageRole",
    "Session",
    "User",
    "title_from_input",
]
