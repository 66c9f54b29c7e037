"""End-to-end wiring: login, bundle sync, outage, offline decisions, logout."""

import base64

import httpx
import pytest
from jose import jwt

from gatepass import build_engine
from gatepass.core.secret_store import FileSecretStore, KeyringSecretStore
from gatepass.core.settings import Settings
from gatepass.services.encrypted_store import ENCRYPTION_KEY_NAME
from gatepass.services.offline_cache import REASON_EXPIRED, REASON_REPLAYED
from tests.conftest import SEED, T0, bundle_contractor, make_qr


def authority_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/v1/scanner/login":
        token = jwt.encode({"exp": T0 + 86400}, "server-secret", algorithm="HS256")
        return httpx.Response(
            200,
            json={
                "token": token,
                "hmacKey": "k3y",
                "guardName": "Grace",
                "scannerId": "SCN-1",
                "assignedSite": {"site_id": "1", "site_code": "SITE-1", "site_name": "North"},
            },
        )
    if request.url.path == "/api/v1/scanner/offline-bundle":
        return httpx.Response(
            200,
            json={
                "siteCode": "SITE-1",
                "siteName": "North",
                "generatedAt": T0,
                "contractors": [
                    {"id": "C1", "firstName": "Ada", "lastName": "Lovelace", "totpSeed": SEED}
                ],
            },
        )
    return httpx.Response(503)


@pytest.mark.asyncio
async def test_full_offline_day(secret_store, test_settings, clock):
    engine = build_engine(
        test_settings,
        secret_store=secret_store,
        transport=httpx.MockTransport(authority_handler),
        clock=clock,
    )
    await engine.session.login("guard@example.com", "pw")
    assert engine.offline_cache.cached_count() == 1

    clock.now = T0 + 10
    qr = make_qr("C1", timestamp=T0, nonce="N1")
    granted = await engine.orchestrator.validate(qr)
    assert granted.is_granted and granted.offline

    clock.now = T0 + 15
    # Distinct raw string carrying the same nonce.
    replay = await engine.orchestrator.validate(make_qr("C1", timestamp=T0, nonce="N1", x=1))
    assert replay.reason == REASON_REPLAYED

    stale = await engine.orchestrator.validate(make_qr("C1", timestamp=T0 - 200, nonce="N2"))
    assert stale.reason == REASON_EXPIRED
    assert [entry.reason for entry in engine.history.entries()] == [
        REASON_EXPIRED,
        REASON_REPLAYED,
        None,
    ]

    engine.session.logout()
    assert engine.offline_cache.cached_count() == 0
    await engine.aclose()


def test_default_engine_keeps_keys_out_of_data_dir(test_settings, os_keyring):
    engine = build_engine(test_settings)
    engine.offline_cache.store_offline_bundle([bundle_contractor("C1")])

    assert isinstance(engine.secret_store, KeyringSecretStore)
    assert engine.store.directory == test_settings.encrypted_dir
    assert ("gatepass", ENCRYPTION_KEY_NAME) in os_keyring.items
    key = base64.b64decode(os_keyring.items[("gatepass", ENCRYPTION_KEY_NAME)])
    for path in test_settings.data_dir.rglob("*"):
        assert path.name != ENCRYPTION_KEY_NAME
        if path.is_file():
            assert key not in path.read_bytes()


def test_file_secret_store_is_opt_in(tmp_path):
    cfg = Settings(data_dir=tmp_path / "gatepass", secret_backend="file")
    engine = build_engine(cfg)
    assert isinstance(engine.secret_store, FileSecretStore)
