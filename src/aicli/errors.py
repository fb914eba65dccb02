"""Exception hierarchy for ai-cli.

Commands catch these at the CLI boundary and turn them into exit codes;
chat and agent turns catch the recoverable ones and offer a retry.
"""
from __future__ import annotations

from typing import Optional


class AICliError(Exception):
    """Base class for all ai-cli errors."""


class ConfigurationError(AICliError):
    """Required configuration (API key, model, client id) is missing."""


class AuthenticationError(AICliError):
    """No stored token, or the stored token has expired."""


class UserNotFoundError(AuthenticationError):
    """The stored token does not belong to any known session."""


class DeviceFlowError(AICliError):
    """The device authorization flow failed on the server side."""

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error


class AccessDeniedError(DeviceFlowError):
    """The user rejected the authorization request."""


class DeviceCodeExpiredError(DeviceFlowError):
    """The device code expired before the user approved it."""


class NetworkError(AICliError):
    """A transport-level failure talking to a remote service."""


class ModelGatewayError(AICliError):
    """The language model call failed."""


class GenerationError(AICliError):
    """The model produced an application that cannot be written."""


class UnsafePathError(GenerationError):
    """A generated path escapes the target application directory."""


class StorageError(AICliError):
    """Local token storage could not be written."""
