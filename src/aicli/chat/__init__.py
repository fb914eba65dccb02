"""Interactive chat, tool and agent sessions."""

from aicli.chat.agent import AgentGenerator, AgentSession, GeneratedApplication, GenerationResult
from aicli.chat.session import ChatSession, open_conversation, resolve_user

__all__ = [
    "AgentGenerator",
    "AgentSession",
    "ChatSession",
    "GeneratedApplication",
    "GenerationResult",
    "open_conversation",
    "resolve_user",
]
