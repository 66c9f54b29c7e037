"""Wire codecs for QR credentials, offline bundles and server responses."""
from __future__ import annotations

import base64
import binascii
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from gatepass.schemas import OfflineBundle, QRPayload, ReasonEnvelope, ValidationResponse


_ModelT = TypeVar("_ModelT", bound=BaseModel)


class DecodeError(ValueError):
    """Raised when a payload cannot be decoded into its structured form."""


def _b64decode(raw: str) -> bytes:
    """Decode standard or URL-safe base64, accepting omitted padding."""
    cleaned = "".join(raw.split())
    if not cleaned:
        raise DecodeError("Empty QR payload")
    cleaned = cleaned.replace("-", "+").replace("_", "/")
    padding = "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned + padding, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecodeError(f"Invalid base64 encoding: {err}") from err


def _parse(model: type[_ModelT], data: bytes | str, what: str) -> _ModelT:
    try:
        return model.model_validate_json(data)
    except ValidationError as err:
        raise DecodeError(f"Invalid {what}: {err.error_count()} field error(s)") from err


def decode_qr_payload(raw: str) -> QRPayload:
    """Decode a scanned QR string into a :class:`QRPayload`.

    Raises:
        DecodeError: On malformed base64, malformed JSON or missing fields.
    """
    return _parse(QRPayload, _b64decode(raw), "QR payload")


def encode_qr_payload(payload: QRPayload) -> str:
    """Encode a payload the way the contractor app renders it."""
    body = payload.model_dump_json(by_alias=True, exclude_none=True)
    return base64.b64encode(body.encode("utf-8")).decode("ascii")


def decode_bundle(raw: bytes | str) -> OfflineBundle:
    """Decode the bulk offline bundle pushed by the authority."""
    return _parse(OfflineBundle, raw, "offline bundle")


def encode_bundle(bundle: OfflineBundle) -> bytes:
    return bundle.model_dump_json(by_alias=True).encode("utf-8")


def decode_validation_response(raw: bytes | str) -> ValidationResponse:
    """Decode an authority validation body.

    The authority returns ``status``/``reason`` even on HTTP 400. Bodies
    that only carry a ``reason`` are decoded through :class:`ReasonEnvelope`
    and reported as denials.

    Raises:
        DecodeError: If neither shape matches.
    """
    try:
        return ValidationResponse.model_validate_json(raw)
    except ValidationError:
        pass
    try:
        envelope = ReasonEnvelope.model_validate_json(raw)
    except ValidationError as err:
        raise DecodeError("Unrecognised validation response") from err
    return ValidationResponse(status="denied", contractor=None, reason=envelope.reason)
