"""Tests for settings loading."""

import os
from pathlib import Path

import pytest

from aicli.core.config import DEFAULT_MODEL, DEFAULT_SERVER_URL, Settings, load_settings
from aicli.errors import ConfigurationError

ENV_VARS = ["AICLI_HOME", "AICLI_SERVER_URL", "GITHUB_CLIENT_ID", "GEMINI_API_KEY", "AI_MODEL", "DATABASE_URL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    yield
    for name in ENV_VARS:
        os.environ.pop(name, None)


def test_defaults(tmp_path):
    settings = load_settings(env_file=tmp_path / "missing.env")

    assert settings.server_url == DEFAULT_SERVER_URL
    assert settings.model == DEFAULT_MODEL
    assert settings.client_id is None
    assert settings.token_file == settings.home / "token.json"
    assert settings.auth_url == "http://localhost:8000/api/auth"


def test_environment_and_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AICLI_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("AICLI_SERVER_URL", "https://env.example.com/")
    monkeypatch.setenv("GITHUB_CLIENT_ID", "env-client")
    monkeypatch.setenv("AI_MODEL", "gemini-2.0-flash")

    settings = load_settings(client_id="cli-client", env_file=tmp_path / "missing.env")

    assert settings.home == tmp_path / "cfg"
    assert settings.client_id == "cli-client"
    assert settings.model == "gemini-2.0-flash"
    assert settings.auth_url == "https://env.example.com/api/auth"


def test_dotenv_file_is_read(tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("GEMINI_API_KEY=from-dotenv\n")

    settings = load_settings(env_file=env_file)

    assert settings.gemini_api_key == "from-dotenv"


def test_database_url_defaults_to_sqlite_in_home(tmp_path):
    settings = Settings(home=tmp_path)
    assert settings.resolved_database_url == f"sqlite:///{tmp_path / 'aicli.db'}"

    settings = Settings(home=tmp_path, database_url="postgresql://db/aicli")
    assert settings.resolved_database_url == "postgresql://db/aicli"


def test_missing_credentials_raise(tmp_path):
    settings = Settings(home=Path(tmp_path))
    with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
        settings.require_model_credentials()
    with pytest.raises(ConfigurationError, match="client"):
        settings.require_client_id()
