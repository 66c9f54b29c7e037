"""Schemas exchanged with the remote authority."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from gatepass.schemas.credential import ContractorInfo


class ValidationRequest(BaseModel):
    """Body of an online QR validation call."""

    model_config = ConfigDict(populate_by_name=True)

    qr_data: str = Field(..., alias="qrData")
    scan_mode: str = "entry"


class ValidationResponse(BaseModel):
    """Authoritative decision returned by the server."""

    status: str
    contractor: ContractorInfo | None = None
    reason: str | None = None

    @property
    def is_granted(self) -> bool:
        return self.status == "granted"


class ReasonEnvelope(BaseModel):
    """Fallback shape for error bodies that only carry a reason."""

    model_config = ConfigDict(extra="ignore")

    reason: str


class AssignedSite(BaseModel):
    """Site the scanner is assigned to."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    site_id: str
    site_code: str
    site_name: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    """Session material delivered by the authority at login."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: str
    hmac_key: str = Field(..., alias="hmacKey")
    guard_name: str = Field(..., alias="guardName")
    scanner_id: str = Field(..., alias="scannerId")
    assigned_site: AssignedSite | None = Field(default=None, alias="assignedSite")
