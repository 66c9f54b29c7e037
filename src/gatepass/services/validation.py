"""Validation orchestration: authority first, offline cache as fallback."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Final

from gatepass.schemas import Decision, ValidationResponse
from gatepass.services.authority import AuthorityClient, AuthorityUnavailableError
from gatepass.services.codec import DecodeError, decode_qr_payload
from gatepass.services.history import ScanHistory
from gatepass.services.offline_cache import OfflineValidationCache

logger = logging.getLogger(__name__)

_MAX_TRACKED_SCANS: Final[int] = 1024


class ValidationOrchestrator:
    """Turns a scanned QR string into a decision.

    A granted online response is written to the offline cache. When the
    authority is unavailable the offline cache is consulted once per raw QR
    string; if it has no opinion the original network error propagates.
    Cache and history calls do blocking file I/O and run in worker threads.
    """

    def __init__(
        self,
        authority: AuthorityClient,
        offline_cache: OfflineValidationCache,
        history: ScanHistory | None = None,
    ) -> None:
        self._authority = authority
        self._offline_cache = offline_cache
        self._history = history
        self._offline_attempted: OrderedDict[str, None] = OrderedDict()

    async def validate(self, qr_data: str, scan_mode: str = "entry") -> Decision:
        try:
            response = await self._authority.validate_qr(qr_data, scan_mode)
        except AuthorityUnavailableError as err:
            logger.warning("Authority unavailable, trying offline validation: %s", err)
            decision = await self._fallback(qr_data)
            if decision is None:
                raise
        else:
            await self._remember_grant(qr_data, response)
            decision = Decision.from_response(response)

        if self._history is not None:
            await asyncio.to_thread(self._history.record, decision)
        return decision

    async def _fallback(self, qr_data: str) -> Decision | None:
        if qr_data in self._offline_attempted:
            logger.info("Offline validation already attempted for this scan")
            return None
        self._offline_attempted[qr_data] = None
        while len(self._offline_attempted) > _MAX_TRACKED_SCANS:
            self._offline_attempted.popitem(last=False)
        return await asyncio.to_thread(self._offline_cache.attempt_offline_validation, qr_data)

    async def _remember_grant(self, qr_data: str, response: ValidationResponse) -> None:
        if not response.is_granted or response.contractor is None:
            return
        try:
            contractor_id = decode_qr_payload(qr_data).contractor_id
        except DecodeError:
            contractor_id = response.contractor.id
        await asyncio.to_thread(
            self._offline_cache.record_validation_response, contractor_id, response
        )

    async def aclose(self) -> None:
        await self._authority.aclose()

    async def __aenter__(self) -> ValidationOrchestrator:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
