"""Schemas for the decoded QR credential."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class QRPayload(BaseModel):
    """Credential fields carried by a single rotating QR code."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    contractor_id: str = Field(..., alias="contractorId", min_length=1)
    timestamp: int = Field(..., description="Mint time, seconds since epoch.")
    totp_token: str = Field(..., alias="totpToken")
    site_code: str = Field(..., alias="siteCode")
    nonce: str = Field(..., min_length=1)
    device_fingerprint: str = Field(..., alias="deviceFingerprint")
    access_mode: str | None = Field(default=None, alias="accessMode")
