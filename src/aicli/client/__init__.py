"""ai-cli authentication client."""

from aicli.client.device_flow import (
    DeviceAuthClient,
    DeviceCodeResponse,
    DevicePoller,
    PollState,
    TokenError,
    TokenResponse,
)
from aicli.client.auth import AuthToken, TokenStore

__all__ = [
    "AuthToken",
    "TokenStore",
    "DeviceAuthClient",
    "DeviceCodeResponse",
    "DevicePoller",
    "PollState",
    "TokenError",
    "TokenResponse",
]
