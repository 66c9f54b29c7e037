"""Process-wide wiring of the validation engine.

Construct one :class:`Engine` at process start and hand it to the
presentation layer; nothing in the package relies on module singletons
beyond the default :data:`~gatepass.core.settings.settings`.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from gatepass.core.secret_store import SecretStore, default_secret_store
from gatepass.core.settings import Settings, settings
from gatepass.services.authority import AuthorityClient, load_authority_config
from gatepass.services.encrypted_store import EncryptedStore
from gatepass.services.history import ScanHistory
from gatepass.services.offline_cache import OfflineValidationCache
from gatepass.services.replay import NonceLedger
from gatepass.services.session import SessionManager
from gatepass.services.signing import RequestSigner
from gatepass.services.totp import TOTPVerifier
from gatepass.services.validation import ValidationOrchestrator


@dataclass(frozen=True)
class Engine:
    """Every long-lived engine component, sharing one secret store."""

    config: Settings
    secret_store: SecretStore
    store: EncryptedStore
    offline_cache: OfflineValidationCache
    history: ScanHistory
    signer: RequestSigner
    authority: AuthorityClient
    orchestrator: ValidationOrchestrator
    session: SessionManager

    async def aclose(self) -> None:
        await self.orchestrator.aclose()


def build_engine(
    config: Settings | None = None,
    *,
    secret_store: SecretStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.time,
) -> Engine:
    """Build the engine from settings, defaulting to the OS keychain for secrets."""
    cfg = config or settings
    secret_backend = secret_store or default_secret_store(cfg)
    store = EncryptedStore(secret_backend, config=cfg)
    offline_cache = OfflineValidationCache(
        store,
        ledger=NonceLedger(config=cfg),
        verifier=TOTPVerifier(cfg),
        config=cfg,
        clock=clock,
    )
    history = ScanHistory(store, config=cfg, clock=clock)
    signer = RequestSigner(secret_backend, config=cfg, clock=clock)
    authority = AuthorityClient(signer, config=load_authority_config(cfg), transport=transport)
    return Engine(
        config=cfg,
        secret_store=secret_backend,
        store=store,
        offline_cache=offline_cache,
        history=history,
        signer=signer,
        authority=authority,
        orchestrator=ValidationOrchestrator(authority, offline_cache, history=history),
        session=SessionManager(
            secret_backend, signer, offline_cache, authority=authority, clock=clock
        ),
    )
