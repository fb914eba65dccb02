"""Shared fixtures: temp storage, a scripted console and a fake model gateway."""

import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest
from rich.console import Console

from aicli.ai.gateway import ModelResponse
from aicli.core.config import Settings
from aicli.storage import ChatService, Database, Session, User
from aicli.ui import AICliConsole


class ScriptedConsole(AICliConsole):
    """Console that answers prompts from scripted lists."""

    def __init__(self, inputs: Optional[List[str]] = None, confirms: Optional[List[bool]] = None):
        super().__init__(console=Console(file=io.StringIO(), width=120, force_terminal=False))
        self.inputs = list(inputs or [])
        self.confirms = list(confirms or [])
        self.confirm_prompts: List[str] = []

    async def prompt_input(self, message: str = "You> ", check=None) -> str:
        if not self.inputs:
            raise EOFError
        value = self.inputs.pop(0)
        if check is not None:
            assert check(value) is None, f"scripted input rejected: {value!r}"
        return value

    def confirm(self, message: str, default: bool = True) -> bool:
        self.confirm_prompts.append(message)
        if not self.confirms:
            return default
        return self.confirms.pop(0)

    @property
    def output(self) -> str:
        return self.console.file.getvalue()


class FakeGateway:
    """ModelGateway double with scripted replies or errors."""

    def __init__(
        self,
        replies: Optional[List[Any]] = None,
        objects: Optional[List[Any]] = None,
    ):
        self.replies = list(replies or [])
        self.objects = list(objects or [])
        self.stream_calls: List[dict] = []
        self.object_calls: List[dict] = []

    async def stream_text(self, messages, on_chunk: Optional[Callable[[str], None]] = None, tools=None):
        self.stream_calls.append({"messages": messages, "tools": tools})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        chunks = reply if isinstance(reply, list) else [reply]
        for chunk in chunks:
            if on_chunk:
                on_chunk(chunk)
        return ModelResponse(content="".join(chunks), finish_reason="STOP")

    async def generate_object(self, prompt, schema):
        self.object_calls.append({"prompt": prompt, "schema": schema})
        obj = self.objects.pop(0)
        if isinstance(obj, Exception):
            raise obj
        return schema.model_validate(obj)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(home=tmp_path / "home", client_id="test-client", gemini_api_key="key")


@pytest.fixture
def database(tmp_path: Path):
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def chat_service(database: Database) -> ChatService:
    return ChatService(database.session_factory)


@pytest.fixture
def user(database: Database) -> User:
    """A user with an active session whose token is 'tok_1'."""
    with database.session_factory() as session:
        user = User(id="user-1", name="Ada Lovelace", email="ada@example.com")
        session.add(user)
        session.add(
            Session(
                token="tok_1",
                user_id="user-1",
                expires_at=datetime(2099, 1, 1, tzinfo=timezone.utc),
            )
        )
        session.commit()
        return user
