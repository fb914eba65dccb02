"""
Device Authorization Flow (RFC 8628) - wire client and token poller.

The CLI requests a device code, shows the user a verification URL, then
polls the token endpoint until the user approves or denies the request.
"""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import httpx
from pydantic import BaseModel, ValidationError

from aicli.errors import (
    AccessDeniedError,
    DeviceCodeExpiredError,
    DeviceFlowError,
    NetworkError,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_SCOPE = "openid profile email"
DEFAULT_INTERVAL = 5
SLOW_DOWN_INCREMENT = 5


class DeviceCodeResponse(BaseModel):
    """Response from the device code endpoint."""
    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    expires_in: int
    interval: int = DEFAULT_INTERVAL

    @property
    def browser_url(self) -> str:
        return self.verification_uri_complete or self.verification_uri


class TokenResponse(BaseModel):
    """Successful token exchange."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    expires_in: Optional[int] = None


class TokenError(BaseModel):
    """Error body from the token endpoint."""
    error: str
    error_description: Optional[str] = None


TokenResult = Union[TokenResponse, TokenError]


class DeviceAuthClient:
    """
    HTTP client for the authorization server's device endpoints.

    Error bodies from the token endpoint are returned as TokenError so the
    poller can branch on them; transport failures raise NetworkError.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.timeout = timeout
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": "ai-cli",
        }

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"POST {url}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                return await client.post(url, json=payload, headers=self._build_headers())
            except httpx.HTTPError as e:
                raise NetworkError(f"Cannot reach authorization server: {e}") from e

    async def request_device_code(self, scope: str = DEFAULT_SCOPE) -> DeviceCodeResponse:
        """Start the flow and get a device code plus user code."""
        response = await self._post(
            "/device/code",
            {"client_id": self.client_id, "scope": scope},
        )
        data = _json_body(response)

        if response.is_error or "error" in data:
            description = data.get("error_description") or data.get("error") or response.status_code
            raise DeviceFlowError(
                f"Failed to request device authorization: {description}",
                error=data.get("error"),
            )

        try:
            return DeviceCodeResponse.model_validate(data)
        except ValidationError as e:
            raise DeviceFlowError(f"Malformed device code response: {e}") from e

    async def request_token(self, device_code: str) -> TokenResult:
        """Exchange the device code for a token (one attempt)."""
        response = await self._post(
            "/device/token",
            {
                "grant_type": DEVICE_CODE_GRANT,
                "device_code": device_code,
                "client_id": self.client_id,
            },
        )
        data = _json_body(response)

        if data.get("access_token"):
            return TokenResponse.model_validate(data)
        if data.get("error"):
            return TokenError.model_validate(data)

        raise DeviceFlowError(f"Unexpected token response (HTTP {response.status_code})")


def _json_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        raise DeviceFlowError(f"Server returned non-JSON response (HTTP {response.status_code})")
    if not isinstance(data, dict):
        raise DeviceFlowError(f"Server returned unexpected payload (HTTP {response.status_code})")
    return data


class PollState(str, Enum):
    """Poller states."""
    PENDING = "pending"
    SLOWED = "slowed"
    DENIED = "denied"
    EXPIRED = "expired"
    GRANTED = "granted"


class DevicePoller:
    """
    Poll the token endpoint until the user approves the device.

    The interval grows by SLOW_DOWN_INCREMENT on every slow_down. Besides the
    server's own expired_token error, polling stops once expires_in seconds
    have passed locally.
    """

    def __init__(
        self,
        client: DeviceAuthClient,
        device_code: str,
        interval: int = DEFAULT_INTERVAL,
        expires_in: Optional[int] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.device_code = device_code
        self.interval = interval
        self.expires_in = expires_in
        self.on_tick = on_tick
        self.state = PollState.PENDING
        self.attempts = 0
        self._sleep = sleep
        self._clock = clock

    async def poll(self) -> TokenResponse:
        deadline = self._clock() + self.expires_in if self.expires_in else None

        while True:
            await self._sleep(self.interval)

            if deadline is not None and self._clock() >= deadline:
                self.state = PollState.EXPIRED
                raise DeviceCodeExpiredError(
                    "The device code has expired. Please try again.",
                    error="expired_token",
                )

            self.attempts += 1
            if self.on_tick:
                self.on_tick(self.attempts)

            result = await self.client.request_token(self.device_code)

            if isinstance(result, TokenResponse):
                self.state = PollState.GRANTED
                logger.debug(f"Device authorized after {self.attempts} attempt(s)")
                return result

            self._handle_error(result)

    def _handle_error(self, result: TokenError) -> None:
        if result.error == "authorization_pending":
            self.state = PollState.PENDING
        elif result.error == "slow_down":
            self.state = PollState.SLOWED
            self.interval += SLOW_DOWN_INCREMENT
            logger.debug(f"Server asked to slow down, interval now {self.interval}s")
        elif result.error == "access_denied":
            self.state = PollState.DENIED
            raise AccessDeniedError("Access was denied by the user.", error=result.error)
        elif result.error == "expired_token":
            self.state = PollState.EXPIRED
            raise DeviceCodeExpiredError(
                "The device code has expired. Please try again.",
                error=result.error,
            )
        else:
            raise DeviceFlowError(
                f"Error: {result.error_description or result.error}",
                error=result.error,
            )
