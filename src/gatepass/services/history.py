"""Bounded scan history kept beside the offline credential cache."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from threading import Lock
from typing import Final

from gatepass.core.settings import Settings, settings
from gatepass.schemas import Decision, ScanHistoryEntry
from gatepass.services.encrypted_store import (
    DecryptError,
    EncryptedStore,
    EncryptedStoreError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

HISTORY_KEY: Final[str] = "scan_history"


class ScanHistory:
    """Most-recent-first log of decisions, capped at ``history_max_entries``.

    Entries name contractors, so they live in the encrypted store. The log
    survives logout; :meth:`clear` empties it.
    """

    def __init__(
        self,
        store: EncryptedStore,
        config: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = config or settings
        self._store = store
        self._clock = clock
        self._lock = Lock()
        self.max_entries = cfg.history_max_entries

    def record(self, decision: Decision) -> ScanHistoryEntry | None:
        """Prepend ``decision``; returns ``None`` if the log could not be written."""
        entry = ScanHistoryEntry.from_decision(
            decision, timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        )
        with self._lock:
            entries = [entry, *self._load()][: self.max_entries]
            try:
                self._store.save(entries, HISTORY_KEY)
            except (OSError, EncryptedStoreError) as err:
                logger.warning("Could not persist scan history: %s", err)
                return None
        return entry

    def entries(self) -> list[ScanHistoryEntry]:
        with self._lock:
            return self._load()

    def clear(self) -> None:
        with self._lock:
            self._store.delete(HISTORY_KEY)
        logger.info("Scan history cleared")

    def _load(self) -> list[ScanHistoryEntry]:
        try:
            return self._store.load(HISTORY_KEY, list[ScanHistoryEntry])
        except NotFoundError:
            return []
        except (DecryptError, OSError) as err:
            logger.warning("Discarding unreadable scan history: %s", err)
            return []
