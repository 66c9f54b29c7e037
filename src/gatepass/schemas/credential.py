"""Schemas for contractor identity and locally cached credentials."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ContractorInfo(BaseModel):
    """Contractor identity as returned by the authority on a grant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    full_name: str = Field(..., alias="fullName")
    company: str | None = None
    email: str | None = None
    photo_url: str | None = None


class CachedCredential(BaseModel):
    """Credential material kept on the terminal for offline decisions."""

    model_config = ConfigDict(populate_by_name=True)

    contractor_id: str
    display_name: str
    company: str | None = None
    email: str | None = None
    photo: str | None = None
    totp_seed: str | None = Field(
        default=None,
        description="Base32 seed; absent means identity-only offline checks.",
    )
    cached_at: datetime

    def to_contractor_info(self) -> ContractorInfo:
        """Return the identity fields shown on a grant."""
        return ContractorInfo(
            id=self.contractor_id,
            full_name=self.display_name,
            company=self.company,
            email=self.email,
            photo_url=self.photo,
        )


class UsedNonce(BaseModel):
    """Replay ledger entry."""

    nonce: str
    used_at: float
