"""Services shared by one CLI invocation, built once and passed to commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from aicli.ai.gateway import GeminiGateway, ModelGateway
from aicli.client.auth import TokenStore
from aicli.core.config import Settings
from aicli.storage import ChatService, Database
from aicli.ui import AICliConsole


@dataclass
class AppContext:
    """Lazily constructed services for the current command."""

    settings: Settings
    ui: AICliConsole
    _token_store: Optional[TokenStore] = None
    _database: Optional[Database] = None
    _chat_service: Optional[ChatService] = None
    _gateway: Optional[ModelGateway] = None

    @property
    def token_store(self) -> TokenStore:
        if self._token_store is None:
            self._token_store = TokenStore(self.settings.token_file)
        return self._token_store

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = Database(self.settings.resolved_database_url)
            self._database.create_all()
        return self._database

    @property
    def chat_service(self) -> ChatService:
        if self._chat_service is None:
            self._chat_service = ChatService(self.database.session_factory)
        return self._chat_service

    @property
    def gateway(self) -> ModelGateway:
        """Raises ConfigurationError when the API key or model is missing."""
        if self._gateway is None:
            api_key, model = self.settings.require_model_credentials()
            self._gateway = GeminiGateway(api_key, model)
        return self._gateway

    def close(self) -> None:
        if self._database is not None:
            self._database.dispose()
