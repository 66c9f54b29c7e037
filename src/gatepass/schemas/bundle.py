"""Schemas for the offline bundle pushed by the authority."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BundleContractor(BaseModel):
    """A single contractor record inside an offline bundle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    company: str | None = None
    photo: str | None = None
    totp_seed: str | None = Field(default=None, alias="totpSeed")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class OfflineBundle(BaseModel):
    """Site metadata plus every contractor allowed on the site."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    site_code: str = Field(..., alias="siteCode")
    site_name: str = Field(..., alias="siteName")
    generated_at: datetime = Field(..., alias="generatedAt")
    contractors: list[BundleContractor] = Field(default_factory=list)
