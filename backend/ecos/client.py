"""ECOS cloud API client with token management."""

import asyncio
import logging
import time
from typing import Optional

import httpx
import jwt
from pydantic import ValidationError

from config import settings
from ecos.models import (
    ChargeModeSettings,
    ChargeModeSettingsRequest,
    ChargeModeSettingsResponse,
    Device,
    DevicesResponse,
    LoginResponse,
    RunData,
    RunDataResponse,
)

logger = logging.getLogger(__name__)

CLIENT_TYPE = "BROWSER"
CLIENT_VERSION = "1.0"
DEFAULT_RETRIES = 3


class EcosError(Exception):
    """Base class for ECOS client errors."""


class EcosAuthError(EcosError):
    """Raised when ECOS authentication fails."""
    pass


class EcosAPIError(EcosError):
    """Raised when an ECOS API call is rejected or returns an unexpected body."""
    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class EcosTransportError(EcosError):
    """Raised when the ECOS API cannot be reached."""
    pass


def epoch_millis() -> int:
    return int(time.time() * 1000)


def client_info() -> dict:
    """Fields the vendor expects on every request."""
    return {
        "_t": epoch_millis(),
        "clientType": CLIENT_TYPE,
        "clientVersion": CLIENT_VERSION,
    }


def token_expiry(token: str) -> int:
    """Return the `exp` claim (epoch seconds) of a three-part access token.

    The signature is not checked; only the vendor can verify it.
    """
    if not token or token.count(".") != 2:
        raise EcosAuthError("Invalid token format")
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError as e:
        raise EcosAuthError(f"Invalid token: {e}") from e
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        raise EcosAuthError("Token has no usable 'exp' claim")
    return int(exp)


class EcosClient:
    """Client for the ECOS cloud API with automatic re-login."""

    def __init__(
        self,
        user: str,
        password: str,
        base_url: str,
        token: Optional[str] = None,
        retries: int = DEFAULT_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._user = user
        self._password = password
        self._base_url = base_url.rstrip("/")
        self._retries = retries
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expiry: int = 0
        self._token_lock = asyncio.Lock()
        self._http_client: Optional[httpx.AsyncClient] = None
        if token:
            self._store_token(token)

    @property
    def token(self) -> Optional[str]:
        return self._token

    def is_token_valid(self) -> bool:
        """True if a token is cached and its expiry lies in the future."""
        return bool(self._token) and self._token_expiry > time.time()

    def _store_token(self, token: str):
        expiry = token_expiry(token)
        self._token = token
        self._token_expiry = expiry

    async def get_http_client(self) -> httpx.AsyncClient:
        """Get or create an async HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    # --- Authentication ---

    async def login(self):
        """Log in with the configured credentials and cache the access token."""
        async with self._token_lock:
            await self._login()

    async def _login(self):
        client = await self.get_http_client()
        payload = {**client_info(), "email": self._user, "password": self._password}
        try:
            response = await client.post("/client/guide/login", json=payload)
        except httpx.TransportError as e:
            raise EcosTransportError(f"Login request failed: {e}") from e

        if not response.is_success:
            raise EcosAuthError(f"Failed to login (status: {response.status_code})")

        try:
            login_response = LoginResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise EcosAuthError(f"Unexpected login response: {e}") from e

        if login_response.data is None:
            raise EcosAuthError(f"Failed to login: {login_response.message or 'no token returned'}")

        self._store_token(login_response.data.access_token)
        logger.info("Logged in to ECOS as %s", self._user)

    async def _ensure_token(self) -> str:
        """Return a valid token, logging in first if needed."""
        async with self._token_lock:
            if not self.is_token_valid():
                await self._login()
            return self._token

    async def _refresh_token(self, rejected: str) -> str:
        """Log in again unless another caller already replaced the rejected token."""
        async with self._token_lock:
            if self._token == rejected or not self.is_token_valid():
                await self._login()
            return self._token

    # --- Requests ---

    async def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Send an authenticated request.

        Handles 401 by logging in again and retrying, up to the retry budget
        of this call. Other responses are returned unchanged.
        """
        retries = self._retries
        token = await self._ensure_token()
        client = await self.get_http_client()

        key = "params" if method == "GET" else "json"
        body = kwargs.pop(key, None) or {}

        while True:
            # Fresh timestamp on every attempt
            kwargs[key] = {**client_info(), **body}
            try:
                response = await client.request(
                    method, endpoint, headers={"Authorization": token}, **kwargs
                )
            except httpx.TransportError as e:
                raise EcosTransportError(f"{method} {endpoint} failed: {e}") from e

            if response.status_code != 401:
                return response

            if retries <= 0:
                raise EcosAuthError(
                    f"Authentication failed after {self._retries + 1} attempts on {endpoint}"
                )
            retries -= 1
            logger.warning("Got 401 on %s, logging in again (%d retries left)", endpoint, retries)
            token = await self._refresh_token(token)

    async def _get_json(self, method: str, endpoint: str, **kwargs) -> dict:
        response = await self.request(method, endpoint, **kwargs)
        if not response.is_success:
            raise EcosAPIError(
                f"API error {response.status_code} on {endpoint}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise EcosAPIError(f"Invalid JSON from {endpoint}", status_code=response.status_code) from e

    # --- API Calls ---

    async def get_devices(self) -> list[Device]:
        """List the devices registered on the account."""
        data = await self._get_json("GET", "/client/home/device/list")
        try:
            return DevicesResponse.model_validate(data).data
        except ValidationError as e:
            raise EcosAPIError(f"Unexpected device list: {e}") from e

    async def get_run_data(self, device_id: str) -> RunData:
        """Get live telemetry for a device."""
        data = await self._get_json(
            "POST", "/client/home/now/device/runData", json={"deviceId": device_id}
        )
        try:
            return RunDataResponse.model_validate(data).data
        except ValidationError as e:
            raise EcosAPIError(f"Unexpected run data: {e}") from e

    async def get_charge_mode_settings(self, device_id: str) -> ChargeModeSettings:
        """Get the charge settings currently held by the vendor."""
        data = await self._get_json(
            "GET", "/client/customize/info", params={"deviceId": device_id}
        )
        try:
            return ChargeModeSettingsResponse.model_validate(data).data
        except ValidationError as e:
            raise EcosAPIError(f"Unexpected charge mode settings: {e}") from e

    async def post_charge_mode_settings(self, request: ChargeModeSettingsRequest):
        """Write charge settings."""
        response = await self.request(
            "POST", "/client/customize/info", json=request.to_payload()
        )
        if not response.is_success:
            raise EcosAPIError(
                f"Failed to post charge mode settings ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )


# Singleton client instance
ecos_client = EcosClient(
    settings.ecos.user,
    settings.ecos.password,
    settings.ecos.base_url,
    token=settings.ecos.token or None,
)
