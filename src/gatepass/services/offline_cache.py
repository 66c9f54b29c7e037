"""Offline validation cache: cached credentials, replay ledger and offline decisions."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from threading import RLock
from typing import Final

from gatepass.core.settings import Settings, settings
from gatepass.schemas import (
    BundleContractor,
    CachedCredential,
    ContractorInfo,
    Decision,
    ValidationResponse,
)
from gatepass.services.codec import DecodeError, decode_qr_payload
from gatepass.services.encrypted_store import (
    DecryptError,
    EncryptedStore,
    EncryptedStoreError,
    NotFoundError,
)
from gatepass.services.replay import NonceLedger, ReplayLedgerError
from gatepass.services.totp import TOTPVerifier

logger = logging.getLogger(__name__)

CREDENTIALS_KEY: Final[str] = "offline_cached_credentials"

REASON_EXPIRED: Final[str] = "QR code expired (offline check)"
REASON_REPLAYED: Final[str] = "QR code already used (offline check)"
REASON_INVALID_TOKEN: Final[str] = "Invalid security token (offline check)"


class OfflineValidationCache:
    """Renders grant/deny decisions without network access.

    Owns two persisted collections: the encrypted list of
    :class:`CachedCredential` (most recent first) and the unencrypted used-nonce
    ledger. Every public operation runs under one lock so concurrent scans
    cannot interleave the ledger's read-modify-write.

    ``attempt_offline_validation`` returns ``None`` when it has no opinion
    (undecodable QR, unknown contractor, stale cache, storage failure); the
    caller then surfaces the original network error instead of a decision.
    """

    def __init__(
        self,
        store: EncryptedStore,
        ledger: NonceLedger | None = None,
        verifier: TOTPVerifier | None = None,
        config: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = config or settings
        self._store = store
        self._ledger = ledger or NonceLedger(config=cfg)
        self._verifier = verifier or TOTPVerifier(cfg)
        self._clock = clock
        self._lock = RLock()
        self.max_entries = cfg.cache_max_entries
        self.max_cache_age_seconds = cfg.cache_max_age_seconds
        self.qr_max_age_seconds = cfg.qr_max_age_seconds

    # --- Write path -----------------------------------------------------------------
    def record_granted_credential(
        self,
        contractor_id: str,
        contractor: ContractorInfo,
        totp_seed: str | None = None,
    ) -> None:
        """Upsert a contractor after an online grant, placing it first."""
        with self._lock:
            entries = self._load_credentials()
            previous = self._find(entries, contractor_id)
            entry = CachedCredential(
                contractor_id=contractor_id,
                display_name=contractor.full_name,
                company=contractor.company,
                email=contractor.email,
                photo=contractor.photo_url,
                totp_seed=totp_seed if totp_seed is not None else _seed_of(previous),
                cached_at=self._now_dt(),
            )
            entries = [e for e in entries if e.contractor_id != contractor_id]
            entries.insert(0, entry)
            self._save_credentials(self._trim(entries))

    def record_validation_response(self, contractor_id: str, response: ValidationResponse) -> None:
        """Cache a server response if it granted access."""
        if not response.is_granted or response.contractor is None:
            return
        self.record_granted_credential(contractor_id, response.contractor)

    def store_offline_bundle(self, contractors: Iterable[BundleContractor]) -> int | None:
        """Upsert every bundle record, appending in bundle order.

        Returns:
            The number of cached credentials after trimming, or ``None`` if
            the cache could not be written.
        """
        with self._lock:
            entries = self._load_credentials()
            cached_at = self._now_dt()
            for record in contractors:
                previous = self._find(entries, record.id)
                seed = record.totp_seed if record.totp_seed is not None else _seed_of(previous)
                entry = CachedCredential(
                    contractor_id=record.id,
                    display_name=record.full_name,
                    company=record.company,
                    email=previous.email if previous is not None else None,
                    photo=record.photo,
                    totp_seed=seed,
                    cached_at=cached_at,
                )
                entries = [e for e in entries if e.contractor_id != record.id]
                entries.append(entry)
            entries = self._trim(entries)
            if not self._save_credentials(entries):
                return None
            logger.info("Stored offline bundle; %d credentials cached", len(entries))
            return len(entries)

    # --- Decision path ----------------------------------------------------------------
    def attempt_offline_validation(self, qr_data: str) -> Decision | None:
        """Decide on a scanned QR string using only local state.

        Staleness and replay are checked before the TOTP verification, and the
        nonce is spent only after every other check has passed.
        """
        try:
            payload = decode_qr_payload(qr_data)
        except DecodeError as err:
            logger.info("Offline validation skipped: %s", err)
            return None

        with self._lock:
            now = self._clock()
            cached = self._find(self._load_credentials(), payload.contractor_id)
            if cached is None:
                logger.info("Contractor %s not cached; no offline opinion", payload.contractor_id)
                return None

            if now - cached.cached_at.timestamp() >= self.max_cache_age_seconds:
                logger.info("Cached credential for %s is stale", payload.contractor_id)
                return None

            if abs(now - payload.timestamp) > self.qr_max_age_seconds:
                return self._deny(payload.contractor_id, REASON_EXPIRED)

            try:
                if self._ledger.is_used(payload.nonce):
                    return self._deny(payload.contractor_id, REASON_REPLAYED)
            except ReplayLedgerError as err:
                logger.warning("Replay ledger unavailable: %s", err)
                return None

            if cached.totp_seed is not None:
                if not self._verifier.validate(
                    payload.totp_token, cached.totp_seed, payload.timestamp
                ):
                    return self._deny(payload.contractor_id, REASON_INVALID_TOKEN)
            else:
                logger.warning(
                    "No TOTP seed cached for %s; granting on identity only",
                    payload.contractor_id,
                )

            try:
                self._ledger.record(payload.nonce, now)
            except ReplayLedgerError as err:
                logger.warning("Could not record nonce, refusing offline grant: %s", err)
                return None

            logger.info("Offline grant for contractor %s", payload.contractor_id)
            return Decision.grant(cached.to_contractor_info(), offline=True)

    # --- Inspection / teardown ----------------------------------------------------------
    def get_credential(self, contractor_id: str) -> CachedCredential | None:
        with self._lock:
            return self._find(self._load_credentials(), contractor_id)

    def cached_count(self) -> int:
        with self._lock:
            return len(self._load_credentials())

    def clear_all(self) -> None:
        """Delete both persisted collections."""
        with self._lock:
            self._store.delete(CREDENTIALS_KEY)
            self._ledger.clear()
            logger.info("Offline validation cache cleared")

    # --- Persistence ------------------------------------------------------------------
    def _load_credentials(self) -> list[CachedCredential]:
        try:
            return self._store.load(CREDENTIALS_KEY, list[CachedCredential])
        except NotFoundError:
            return []
        except DecryptError as err:
            logger.warning("Discarding unreadable credential cache: %s", err)
            return []
        except OSError as err:
            logger.warning("Credential cache unreadable: %s", err)
            return []

    def _save_credentials(self, entries: list[CachedCredential]) -> bool:
        try:
            self._store.save(entries, CREDENTIALS_KEY)
        except (OSError, EncryptedStoreError) as err:
            logger.warning("Could not persist credential cache: %s", err)
            return False
        return True

    # --- Helpers ------------------------------------------------------------------------
    def _trim(self, entries: list[CachedCredential]) -> list[CachedCredential]:
        """Keep at most ``max_entries``, preferring the most recently updated."""
        if len(entries) <= self.max_entries:
            return entries
        ranked = sorted(
            range(len(entries)),
            key=lambda idx: (entries[idx].cached_at, -idx),
            reverse=True,
        )
        keep = set(ranked[: self.max_entries])
        return [entry for idx, entry in enumerate(entries) if idx in keep]

    @staticmethod
    def _find(entries: list[CachedCredential], contractor_id: str) -> CachedCredential | None:
        return next((e for e in entries if e.contractor_id == contractor_id), None)

    def _now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    @staticmethod
    def _deny(contractor_id: str, reason: str) -> Decision:
        logger.info("Offline deny for contractor %s: %s", contractor_id, reason)
        return Decision.deny(reason, offline=True)


def _seed_of(entry: CachedCredential | None) -> str | None:
    return entry.totp_seed if entry is not None else None
