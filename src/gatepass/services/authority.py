"""HTTP client for the remote validation authority.

Every call goes through :class:`~gatepass.services.signing.HMACRequestAuth`
except login, which is unsigned. Transport failures, timeouts and 5xx
responses raise :class:`AuthorityUnavailableError`, the signal the
orchestrator uses to fall back to offline validation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Final

import httpx
from pydantic import ValidationError

from gatepass.core.settings import Settings, settings
from gatepass.schemas import (
    LoginRequest,
    LoginResponse,
    OfflineBundle,
    ValidationRequest,
    ValidationResponse,
)
from gatepass.services.codec import DecodeError, decode_bundle, decode_validation_response
from gatepass.services.signing import RequestSigner

logger = logging.getLogger(__name__)

HTTP_OK: Final[int] = 200
HTTP_INTERNAL_SERVER_ERROR: Final[int] = 500

VALIDATE_PATH: Final[str] = "/api/v1/qr/validate"
LOGIN_PATH: Final[str] = "/api/v1/scanner/login"
OFFLINE_BUNDLE_PATH: Final[str] = "/api/v1/scanner/offline-bundle"


class AuthorityError(RuntimeError):
    """Base exception raised for authority failures."""


class AuthorityUnavailableError(AuthorityError):
    """Raised when the authority cannot be reached or fails server-side."""


class AuthorityResponseError(AuthorityError):
    """Raised when the authority answers with something we cannot use."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AuthorityConfig:
    """Immutable configuration for authority calls."""

    base_url: str
    timeout_seconds: float
    bundle_timeout_seconds: float


def load_authority_config(config: Settings | None = None) -> AuthorityConfig:
    """Build configuration object from settings."""
    cfg = config or settings
    return AuthorityConfig(
        base_url=cfg.api_base_url,
        timeout_seconds=float(cfg.http_timeout_seconds),
        bundle_timeout_seconds=float(cfg.bundle_timeout_seconds),
    )


class AuthorityClient:
    """Async client wrapper for the contractor access authority."""

    def __init__(
        self,
        signer: RequestSigner,
        config: AuthorityConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_authority_config()
        self._signer = signer
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    auth=self._signer.auth(),
                    transport=self._transport,
                )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise AuthorityUnavailableError(f"Authority timed out on {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise AuthorityUnavailableError(f"Authority request failed: {exc}") from exc

        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise AuthorityUnavailableError(
                f"Authority responded with {response.status_code} on {method} {path}"
            )
        return response

    async def validate_qr(self, qr_data: str, scan_mode: str = "entry") -> ValidationResponse:
        """Ask the authority for a decision on a scanned QR string."""
        body = ValidationRequest(qr_data=qr_data, scan_mode=scan_mode)
        response = await self._request(
            "POST", VALIDATE_PATH, json=body.model_dump(by_alias=True)
        )
        try:
            return decode_validation_response(response.content)
        except DecodeError as err:
            raise AuthorityResponseError(
                f"Server error ({response.status_code})", status_code=response.status_code
            ) from err

    async def login(self, email: str, password: str) -> LoginResponse:
        """Authenticate the scanner. This call is never signed."""
        body = LoginRequest(email=email, password=password)
        response = await self._request(
            "POST", LOGIN_PATH, json=body.model_dump(), auth=None
        )
        if response.status_code != HTTP_OK:
            reason = _reason_from(response)
            raise AuthorityResponseError(
                reason or f"Login failed ({response.status_code})",
                status_code=response.status_code,
            )
        try:
            return LoginResponse.model_validate_json(response.content)
        except ValidationError as err:
            raise AuthorityResponseError("Invalid login response", response.status_code) from err

    async def fetch_offline_bundle(self, token: str) -> OfflineBundle:
        """Download the offline bundle for the scanner's assigned site."""
        response = await self._request(
            "GET",
            OFFLINE_BUNDLE_PATH,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.config.bundle_timeout_seconds,
        )
        if response.status_code != HTTP_OK:
            raise AuthorityResponseError(
                f"Unexpected response ({response.status_code}) for offline bundle",
                status_code=response.status_code,
            )
        try:
            return decode_bundle(response.content)
        except DecodeError as err:
            raise AuthorityResponseError(str(err), response.status_code) from err

    async def aclose(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _reason_from(response: httpx.Response) -> str | None:
    try:
        return decode_validation_response(response.content).reason
    except DecodeError:
        return None
