"""Codec tests for QR payloads, bundles and authority responses."""

import base64
import json

import pytest
from pydantic import ValidationError

from gatepass.schemas import QRPayload
from gatepass.services.codec import (
    DecodeError,
    decode_bundle,
    decode_qr_payload,
    decode_validation_response,
    encode_bundle,
    encode_qr_payload,
)
from tests.conftest import T0, bundle_contractor, make_qr


def _b64(obj) -> str:
    return base64.b64encode(json.dumps(obj).encode()).decode()


class TestQRPayload:
    def test_decodes_all_fields(self):
        payload = decode_qr_payload(make_qr("C7", nonce="N9", token="123456", accessMode="exit"))
        assert payload.contractor_id == "C7"
        assert payload.timestamp == T0
        assert payload.totp_token == "123456"
        assert payload.site_code == "SITE-1"
        assert payload.nonce == "N9"
        assert payload.device_fingerprint == "device-abc"
        assert payload.access_mode == "exit"

    def test_access_mode_is_optional(self):
        assert decode_qr_payload(make_qr()).access_mode is None

    def test_accepts_urlsafe_without_padding(self):
        raw = make_qr().replace("+", "-").replace("/", "_").rstrip("=")
        assert decode_qr_payload(raw) == decode_qr_payload(make_qr())

    def test_payload_is_immutable(self):
        payload = decode_qr_payload(make_qr())
        with pytest.raises(ValidationError):
            payload.nonce = "other"  # type: ignore[misc]

    def test_encode_round_trips(self):
        payload = decode_qr_payload(make_qr(accessMode="entry"))
        assert decode_qr_payload(encode_qr_payload(payload)) == payload

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "!!!not base64!!!",
            base64.b64encode(b"not json").decode(),
            base64.b64encode(b"\xff\xfe\x00").decode(),
            _b64(["a", "list"]),
        ],
    )
    def test_malformed_input_raises_decode_error(self, raw):
        with pytest.raises(DecodeError):
            decode_qr_payload(raw)

    @pytest.mark.parametrize(
        "missing",
        ["contractorId", "timestamp", "totpToken", "siteCode", "nonce", "deviceFingerprint"],
    )
    def test_missing_required_field_raises(self, missing):
        fields = {
            "contractorId": "C1",
            "timestamp": T0,
            "totpToken": "123456",
            "siteCode": "S",
            "nonce": "N",
            "deviceFingerprint": "D",
        }
        fields.pop(missing)
        with pytest.raises(DecodeError):
            decode_qr_payload(_b64(fields))

    def test_empty_contractor_id_is_rejected(self):
        with pytest.raises(DecodeError):
            decode_qr_payload(make_qr(""))


class TestBundle:
    def test_decodes_bundle_wire_format(self):
        raw = json.dumps(
            {
                "siteCode": "SITE-1",
                "siteName": "North Gate",
                "generatedAt": T0,
                "contractors": [
                    {
                        "id": "C1",
                        "firstName": "Ada",
                        "lastName": "Lovelace",
                        "company": "AE Ltd",
                        "totpSeed": "JBSWY3DPEHPK3PXP",
                    },
                    {"id": "C2", "firstName": "Alan", "lastName": "Turing", "company": None},
                ],
            }
        )
        bundle = decode_bundle(raw)
        assert bundle.site_name == "North Gate"
        assert bundle.generated_at.timestamp() == T0
        assert [c.id for c in bundle.contractors] == ["C1", "C2"]
        assert bundle.contractors[0].full_name == "Ada Lovelace"
        assert bundle.contractors[0].totp_seed == "JBSWY3DPEHPK3PXP"
        assert bundle.contractors[1].totp_seed is None

    def test_encode_round_trips(self):
        bundle = decode_bundle(
            json.dumps({"siteCode": "S", "siteName": "N", "generatedAt": T0, "contractors": []})
        )
        bundle = bundle.model_copy(update={"contractors": [bundle_contractor()]})
        assert decode_bundle(encode_bundle(bundle)) == bundle

    @pytest.mark.parametrize("raw", [b"", b"{}", b"[1,2]", b'{"siteCode": "S"}'])
    def test_malformed_bundle_raises(self, raw):
        with pytest.raises(DecodeError):
            decode_bundle(raw)


class TestValidationResponse:
    def test_full_envelope(self):
        response = decode_validation_response(
            json.dumps(
                {
                    "status": "granted",
                    "contractor": {"id": "C1", "fullName": "Ada Lovelace", "photo_url": "p.png"},
                    "reason": None,
                }
            )
        )
        assert response.is_granted
        assert response.contractor.full_name == "Ada Lovelace"
        assert response.contractor.photo_url == "p.png"

    def test_reason_only_body_falls_back_to_denied(self):
        response = decode_validation_response(b'{"reason": "Site not assigned", "code": 400}')
        assert response.status == "denied"
        assert response.reason == "Site not assigned"
        assert response.contractor is None

    @pytest.mark.parametrize("raw", [b"<html>", b"{}", b'{"detail": "nope"}'])
    def test_unrecognised_body_raises(self, raw):
        with pytest.raises(DecodeError):
            decode_validation_response(raw)


def test_qr_payload_populates_by_field_name():
    payload = QRPayload(
        contractor_id="C1",
        timestamp=T0,
        totp_token="000000",
        site_code="S",
        nonce="N",
        device_fingerprint="D",
    )
    assert payload.contractor_id == "C1"
