"""Scanner session lifecycle: login material, expiry and teardown."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from jose import JWTError, jwt
from pydantic import ValidationError

from gatepass.core.secret_store import SecretStore
from gatepass.schemas import AssignedSite
from gatepass.services.authority import AuthorityClient, AuthorityError
from gatepass.services.offline_cache import OfflineValidationCache
from gatepass.services.signing import RequestSigner

logger = logging.getLogger(__name__)

TOKEN_KEY: Final[str] = "scanner_jwt_token"
GUARD_NAME_KEY: Final[str] = "scanner_guard_name"
SCANNER_ID_KEY: Final[str] = "scanner_scanner_id"
ASSIGNED_SITE_KEY: Final[str] = "scanner_assigned_site"

_SESSION_KEYS: Final[tuple[str, ...]] = (
    TOKEN_KEY,
    GUARD_NAME_KEY,
    SCANNER_ID_KEY,
    ASSIGNED_SITE_KEY,
)


@dataclass(frozen=True)
class ScannerSession:
    """Authenticated scanner identity restored from secure storage."""

    token: str
    guard_name: str
    scanner_id: str
    assigned_site: AssignedSite | None


class SessionManager:
    """Owns the signing key and session secrets from login to logout.

    Logout destroys every session secret, the signing key included, and
    wipes the offline cache so no contractor data outlives the session.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        signer: RequestSigner,
        offline_cache: OfflineValidationCache,
        authority: AuthorityClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret_store = secret_store
        self._signer = signer
        self._offline_cache = offline_cache
        self._authority = authority
        self._clock = clock

    # --- Persistence ------------------------------------------------------------------
    def save_login(
        self,
        token: str,
        guard_name: str,
        scanner_id: str,
        assigned_site: AssignedSite | None,
        signing_key: str,
    ) -> ScannerSession:
        """Persist login material; the signing key is stored first."""
        self._signer.store_key(signing_key)
        self._secret_store.set(TOKEN_KEY, token.encode("utf-8"))
        self._secret_store.set(GUARD_NAME_KEY, guard_name.encode("utf-8"))
        self._secret_store.set(SCANNER_ID_KEY, scanner_id.encode("utf-8"))
        if assigned_site is not None:
            self.save_assigned_site(assigned_site)
        else:
            self._secret_store.delete(ASSIGNED_SITE_KEY)
        return ScannerSession(token, guard_name, scanner_id, assigned_site)

    def save_assigned_site(self, site: AssignedSite) -> None:
        self._secret_store.set(ASSIGNED_SITE_KEY, site.model_dump_json().encode("utf-8"))

    @property
    def token(self) -> str | None:
        return self._read_text(TOKEN_KEY)

    def current_session(self) -> ScannerSession | None:
        """Restore the stored session, logging out if its token has expired."""
        token = self.token
        if not token:
            return None
        if self.is_token_expired(token):
            logger.info("Stored scanner token expired; logging out")
            self.logout()
            return None
        return ScannerSession(
            token=token,
            guard_name=self._read_text(GUARD_NAME_KEY) or "",
            scanner_id=self._read_text(SCANNER_ID_KEY) or "",
            assigned_site=self._read_site(),
        )

    def is_authenticated(self) -> bool:
        return self.current_session() is not None

    def is_token_expired(self, token: str) -> bool:
        """Return True when the JWT has no readable ``exp`` or it has passed.

        The signature is not checked here; only the authority can verify it.
        """
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return True
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return True
        return self._clock() > exp

    # --- Flows --------------------------------------------------------------------------
    async def login(self, email: str, password: str) -> ScannerSession:
        """Authenticate, persist the session and pre-download the offline bundle."""
        authority = self._require_authority()
        result = await authority.login(email.strip(), password)
        session = self.save_login(
            token=result.token,
            guard_name=result.guard_name,
            scanner_id=result.scanner_id,
            assigned_site=result.assigned_site,
            signing_key=result.hmac_key,
        )
        logger.info("Scanner %s logged in", session.scanner_id)
        if session.assigned_site is not None:
            await self.refresh_offline_bundle()
        return session

    async def refresh_offline_bundle(self) -> int | None:
        """Fetch and store the offline bundle; failures leave the cache untouched."""
        authority = self._require_authority()
        token = self.token
        if not token:
            return None
        try:
            bundle = await authority.fetch_offline_bundle(token)
        except AuthorityError as err:
            logger.warning("Offline bundle download failed: %s", err)
            return None
        return await asyncio.to_thread(
            self._offline_cache.store_offline_bundle, bundle.contractors
        )

    def logout(self) -> None:
        for key in _SESSION_KEYS:
            self._secret_store.delete(key)
        self._signer.clear_key()
        self._offline_cache.clear_all()
        logger.info("Scanner session cleared")

    # --- Helpers ------------------------------------------------------------------------
    def _require_authority(self) -> AuthorityClient:
        if self._authority is None:
            raise RuntimeError("SessionManager has no authority client configured")
        return self._authority

    def _read_text(self, key: str) -> str | None:
        raw = self._secret_store.get(key)
        return raw.decode("utf-8") if raw is not None else None

    def _read_site(self) -> AssignedSite | None:
        raw = self._secret_store.get(ASSIGNED_SITE_KEY)
        if raw is None:
            return None
        try:
            return AssignedSite.model_validate_json(raw)
        except ValidationError:
            logger.warning("Stored assigned site is unreadable; ignoring it")
            return None
