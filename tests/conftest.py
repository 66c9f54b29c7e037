# tests/conftest.py
from __future__ import annotations

import base64
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from gatepass.core.secret_store import MemorySecretStore
from gatepass.core.settings import Settings
from gatepass.schemas import BundleContractor
from gatepass.services.encrypted_store import EncryptedStore
from gatepass.services.offline_cache import OfflineValidationCache
from gatepass.services.replay import NonceLedger
from gatepass.services.totp import TOTPVerifier, generate_token

T0 = 1_700_000_000
SEED = "JBSWY3DPEHPK3PXP"
OTHER_SEED = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class FakeClock:
    """Mutable clock injected wherever services read the time."""

    def __init__(self, now: float = T0) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every on-disk artefact into a temporary directory."""
    return Settings(data_dir=tmp_path / "gatepass", api_base_url="https://authority.test")


@pytest.fixture()
def secret_store() -> MemorySecretStore:
    return MemorySecretStore()


class DictKeyring(KeyringBackend):
    """In-memory keychain standing in for the platform backend."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.items: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.items.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.items[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.items[(service, username)]
        except KeyError as err:
            raise PasswordDeleteError(username) from err


@pytest.fixture()
def os_keyring(mocker) -> DictKeyring:
    """Route the default keychain lookup to an in-memory backend."""
    backend = DictKeyring()
    mocker.patch("keyring.get_keyring", return_value=backend)
    return backend


@pytest.fixture()
def encrypted_store(secret_store: MemorySecretStore, test_settings: Settings) -> EncryptedStore:
    return EncryptedStore(secret_store, config=test_settings)


@pytest.fixture()
def ledger(test_settings: Settings) -> NonceLedger:
    return NonceLedger(config=test_settings)


@pytest.fixture()
def cache(
    encrypted_store: EncryptedStore,
    ledger: NonceLedger,
    test_settings: Settings,
    clock: FakeClock,
) -> OfflineValidationCache:
    return OfflineValidationCache(
        encrypted_store,
        ledger=ledger,
        verifier=TOTPVerifier(test_settings),
        config=test_settings,
        clock=clock,
    )


def token_at(seed: str, at: float) -> str:
    """Return the TOTP a contractor app would display at ``at``."""
    return generate_token(seed, int(at // 30))


def make_qr(
    contractor_id: str = "C1",
    *,
    timestamp: int = T0,
    seed: str | None = SEED,
    token: str | None = None,
    nonce: str = "N1",
    **extra: Any,
) -> str:
    """Build a base64 QR string the way the contractor app mints it."""
    if token is None:
        token = token_at(seed, timestamp) if seed else "000000"
    payload = {
        "contractorId": contractor_id,
        "timestamp": timestamp,
        "totpToken": token,
        "siteCode": "SITE-1",
        "nonce": nonce,
        "deviceFingerprint": "device-abc",
        **extra,
    }
    return base64.b64encode(json.dumps(payload).encode()).decode()


def bundle_contractor(
    contractor_id: str = "C1",
    *,
    seed: str | None = SEED,
    first: str = "Ada",
    last: str = "Lovelace",
) -> BundleContractor:
    return BundleContractor(
        id=contractor_id,
        first_name=first,
        last_name=last,
        company="Analytical Engines Ltd",
        totp_seed=seed,
    )


@pytest.fixture()
def qr_factory() -> Callable[..., str]:
    return make_qr
