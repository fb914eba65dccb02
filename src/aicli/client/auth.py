"""
ai-cli Authentication - token storage on local disk.

A single bearer token lives in ~/.aicli/token.json. Its absence means the
user is not logged in.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from aicli.client.device_flow import TokenResponse
from aicli.errors import AuthenticationError, StorageError

logger = logging.getLogger(__name__)

# Tokens closer than this to expiry are treated as already expired
EXPIRY_MARGIN = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthToken(BaseModel):
    """Persisted credential."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class TokenStore:
    """
    Stores the bearer token as pretty-printed JSON.

    No locking: if two commands race, the last writer wins.
    """

    def __init__(self, path: Path, clock: Callable[[], datetime] = _utcnow):
        self.path = path
        self._clock = clock

    def store(self, token: TokenResponse) -> bool:
        """Persist a token response. Returns False if the file can't be written."""
        now = self._clock()
        expires_at = now + timedelta(seconds=token.expires_in) if token.expires_in else None

        record = AuthToken(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_type=token.token_type or "Bearer",
            scope=token.scope,
            expires_at=expires_at,
            created_at=now,
        )

        try:
            self._write(record)
        except StorageError as e:
            logger.warning(str(e))
            return False

        logger.debug(f"Token stored at {self.path}")
        return True

    def _write(self, record: AuthToken) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(record.model_dump(mode="json"), indent=2),
                encoding="utf-8",
            )
            self.path.chmod(0o600)  # Secure permissions
        except OSError as e:
            raise StorageError(f"Failed to store token at {self.path}: {e}") from e

    def load(self) -> Optional[AuthToken]:
        """Load the stored token, or None if there is no usable token file."""
        if not self.path.exists():
            return None
        try:
            return AuthToken.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

    def clear(self) -> bool:
        """Delete the token file. A file that is already gone counts as cleared."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Failed to remove token file {self.path}: {e}")
            return False
        return True

    def is_expired(self) -> bool:
        """True unless a token exists whose expiry is at least 5 minutes away."""
        token = self.load()
        if token is None or token.expires_at is None:
            return True

        expires_at = token.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        return expires_at - self._clock() < EXPIRY_MARGIN

    def is_authenticated(self) -> bool:
        """Check if a valid, unexpired token is stored."""
        return not self.is_expired()

    def require_auth(self) -> AuthToken:
        """Return the stored token or raise AuthenticationError."""
        token = self.load()
        if token is None:
            raise AuthenticationError("Not authenticated. Please run 'ai-cli login' first.")
        if self.is_expired():
            raise AuthenticationError("Your token has expired. Please run 'ai-cli login' again.")
        return token
