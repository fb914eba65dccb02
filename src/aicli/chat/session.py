"""
Chat loop - turn taking between the user, the model and the conversation store.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from aicli.ai.gateway import ModelGateway
from aicli.ai.tools import ToolRegistry
from aicli.client.auth import TokenStore
from aicli.errors import ModelGatewayError, NetworkError, UserNotFoundError
from aicli.storage import ChatService, Conversation, ConversationMode, Message, MessageRole, User
from aicli.ui import AICliConsole

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"


def resolve_user(token_store: TokenStore, chat_service: ChatService) -> User:
    """Find the user behind the stored token.

    Raises AuthenticationError when not logged in, UserNotFoundError when the
    token matches no session.
    """
    token = token_store.require_auth()
    user = chat_service.find_user_by_token(token.access_token)
    if user is None:
        raise UserNotFoundError("User not found. Please login again.")
    return user


def open_conversation(
    ui: AICliConsole,
    chat_service: ChatService,
    user: User,
    mode: ConversationMode,
    conversation_id: Optional[str] = None,
    working_dir: Optional[Path] = None,
) -> Conversation:
    """Load or create the conversation and show its header (and history)."""
    with ui.thinking("Loading conversation..."):
        conversation = chat_service.get_or_create_conversation(user.id, conversation_id, mode)

    ui.print_conversation_info(conversation.display_title, conversation.id, conversation.mode, working_dir)

    if conversation.messages:
        ui.print_history([(m.role, m.content) for m in conversation.messages])

    return conversation


def check_message(value: str) -> Optional[str]:
    if not value.strip():
        return "Message can't be empty"
    return None


class ChatSession:
    """Interactive chat bound to one conversation.

    With a ToolRegistry, enabled tools are passed along on every turn.
    """

    def __init__(
        self,
        ui: AICliConsole,
        gateway: ModelGateway,
        chat_service: ChatService,
        conversation: Conversation,
        tools: Optional[ToolRegistry] = None,
    ):
        self.ui = ui
        self.gateway = gateway
        self.chat_service = chat_service
        self.conversation = conversation
        self.tools = tools

    async def run(self) -> None:
        self.ui.print_chat_help(self.tools.enabled_names() if self.tools else None)

        while True:
            user_input = await self.ui.prompt_input("Your message> ", check=check_message)

            if user_input.strip().lower() == EXIT_COMMAND:
                self.ui.print_warning("Chat session ended")
                return

            if not await self.turn(user_input):
                return

    async def turn(self, user_input: str) -> bool:
        """One exchange. Returns False when the session should end."""
        conversation_id = self.conversation.id

        self.chat_service.add_message(conversation_id, MessageRole.USER, user_input)
        messages = self.chat_service.get_messages(conversation_id)

        response = await self._respond(messages)
        if response is None:
            return False

        self.chat_service.add_message(conversation_id, MessageRole.ASSISTANT, response)
        if self.chat_service.update_title_if_first(conversation_id, len(messages), user_input):
            logger.debug(f"Titled conversation {conversation_id}")
        return True

    async def _respond(self, messages: List[Message]) -> Optional[str]:
        """Stream a reply, offering a retry on failure. None means give up."""
        history = ChatService.format_messages_for_ai(messages)
        tools = self.tools.enabled_tools() if self.tools else None

        while True:
            try:
                with self.ui.streaming_response() as on_chunk:
                    result = await self.gateway.stream_text(history, on_chunk, tools)
                if not result.content:
                    raise ModelGatewayError("The model returned an empty response")
                return result.content
            except (ModelGatewayError, NetworkError) as e:
                logger.debug("Model call failed", exc_info=True)
                self.ui.print_error(f"Failed to get AI response: {e}")
                if not self.ui.confirm("Would you like to retry?", default=True):
                    return None
