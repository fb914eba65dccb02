"""Configuration management for ai-cli."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from aicli.errors import ConfigurationError

# Global config directory
AICLI_HOME = Path.home() / ".aicli"
TOKEN_FILE_NAME = "token.json"
DATABASE_FILE_NAME = "aicli.db"

DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_MODEL = "gemini-2.5-flash"


class Settings(BaseModel):
    """Resolved settings for one CLI invocation."""

    server_url: str = DEFAULT_SERVER_URL
    auth_base_path: str = "/api/auth"
    client_id: Optional[str] = None
    gemini_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    database_url: Optional[str] = None
    home: Path = Field(default_factory=lambda: AICLI_HOME)

    @property
    def token_file(self) -> Path:
        return self.home / TOKEN_FILE_NAME

    @property
    def resolved_database_url(self) -> str:
        """Database URL, defaulting to a SQLite file in the config directory."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.home / DATABASE_FILE_NAME}"

    @property
    def auth_url(self) -> str:
        return self.server_url.rstrip("/") + self.auth_base_path

    def require_client_id(self) -> str:
        if not self.client_id:
            raise ConfigurationError(
                "OAuth client id not set. Pass --client-id or set GITHUB_CLIENT_ID."
            )
        return self.client_id

    def require_model_credentials(self) -> tuple[str, str]:
        """Return (api_key, model) or raise if either is missing."""
        if not self.gemini_api_key:
            raise ConfigurationError("Gemini api key not set. Set GEMINI_API_KEY.")
        if not self.model:
            raise ConfigurationError("Gemini model not set. Set AI_MODEL.")
        return self.gemini_api_key, self.model


def load_settings(
    server_url: Optional[str] = None,
    client_id: Optional[str] = None,
    env_file: Optional[Path] = None,
) -> Settings:
    """Load settings from the environment (and a .env file, if present).

    Explicit arguments take precedence over environment variables.
    """
    load_dotenv(dotenv_path=env_file, override=False)

    home = os.environ.get("AICLI_HOME")

    return Settings(
        server_url=server_url or os.environ.get("AICLI_SERVER_URL") or DEFAULT_SERVER_URL,
        client_id=client_id or os.environ.get("GITHUB_CLIENT_ID"),
        gemini_api_key=os.environ.get("GEMINI_API_KEY"),
        model=os.environ.get("AI_MODEL") or DEFAULT_MODEL,
        database_url=os.environ.get("DATABASE_URL"),
        home=Path(home).expanduser() if home else AICLI_HOME,
    )
