"""Replay protection ledger for offline QR validation."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from gatepass.core.settings import Settings, settings
from gatepass.schemas import UsedNonce

logger = logging.getLogger(__name__)

_LEDGER_ADAPTER = TypeAdapter(list[UsedNonce])


class ReplayLedgerError(RuntimeError):
    """Raised when the ledger file cannot be read or written."""


class NonceLedger:
    """File-backed record of nonces consumed by offline grants.

    Nonces carry no personal data, so the ledger is stored unencrypted.
    Entries older than the TTL are purged whenever a new nonce is recorded.
    Callers serialize access; the ledger holds no lock of its own.
    """

    def __init__(self, path: Path | None = None, config: Settings | None = None) -> None:
        cfg = config or settings
        self._path = Path(path) if path is not None else cfg.nonce_ledger_path
        self.ttl_seconds = cfg.nonce_ttl_seconds

    @property
    def path(self) -> Path:
        return self._path

    def entries(self) -> list[UsedNonce]:
        """Return every ledger entry currently on disk."""
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as err:
            raise ReplayLedgerError(f"Cannot read nonce ledger: {err}") from err
        try:
            return _LEDGER_ADAPTER.validate_json(raw)
        except ValidationError:
            logger.warning("Nonce ledger at %s is corrupt; starting a fresh ledger", self._path)
            return []

    def is_used(self, nonce: str) -> bool:
        """Return True if the nonce has already been consumed."""
        return any(entry.nonce == nonce for entry in self.entries())

    def record(self, nonce: str, now: float) -> None:
        """Mark ``nonce`` as used at ``now`` after purging expired entries."""
        kept = self._fresh(self.entries(), now)
        kept.append(UsedNonce(nonce=nonce, used_at=now))
        self._write(kept)

    def purge(self, now: float) -> int:
        """Drop expired entries and return how many were removed."""
        current = self.entries()
        kept = self._fresh(current, now)
        removed = len(current) - len(kept)
        if removed:
            self._write(kept)
        return removed

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as err:
            raise ReplayLedgerError(f"Cannot delete nonce ledger: {err}") from err

    def _fresh(self, entries: list[UsedNonce], now: float) -> list[UsedNonce]:
        cutoff = now - self.ttl_seconds
        return [entry for entry in entries if entry.used_at >= cutoff]

    def _write(self, entries: list[UsedNonce]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".ledger-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(_LEDGER_ADAPTER.dump_json(entries))
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as err:
            raise ReplayLedgerError(f"Cannot write nonce ledger: {err}") from err
