"""HMAC request signing wired into outbound HTTP calls."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from typing import Final

import httpx

from gatepass.core.secret_store import SecretStore
from gatepass.core.security import build_signature_headers
from gatepass.core.settings import Settings, settings

logger = logging.getLogger(__name__)

SIGNING_KEY_NAME: Final[str] = "hmac_signing_key"


class RequestSigner:
    """Signs request bodies with the key delivered by the authority at login.

    Before login there is no key and signing is a no-op; the login endpoint
    itself is unsigned.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        config: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = config or settings
        self._secret_store = secret_store
        self._clock = clock
        self.signature_header = cfg.signature_header
        self.timestamp_header = cfg.timestamp_header

    def signing_key(self) -> bytes | None:
        key = self._secret_store.get(SIGNING_KEY_NAME)
        return key or None

    def store_key(self, key: str) -> None:
        self._secret_store.set(SIGNING_KEY_NAME, key.encode("utf-8"))

    def clear_key(self) -> None:
        self._secret_store.delete(SIGNING_KEY_NAME)

    def headers_for(self, body: bytes) -> dict[str, str]:
        """Return signature headers for ``body``, or nothing before login."""
        key = self.signing_key()
        if key is None:
            return {}
        return build_signature_headers(
            int(self._clock()),
            body,
            key,
            signature_header=self.signature_header,
            timestamp_header=self.timestamp_header,
        )

    def auth(self) -> HMACRequestAuth:
        return HMACRequestAuth(self)


class HMACRequestAuth(httpx.Auth):
    """httpx auth flow attaching ``X-Signature``/``X-Timestamp`` headers."""

    requires_request_body = True

    def __init__(self, signer: RequestSigner) -> None:
        self._signer = signer

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        headers = self._signer.headers_for(request.content)
        if headers:
            request.headers.update(headers)
        else:
            logger.debug(
                "No signing key stored; sending %s %s unsigned", request.method, request.url.path
            )
        yield request
