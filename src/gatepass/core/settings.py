"""Terminal settings and configuration.

This module defines all configuration options for the gatepass scanner engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scanner settings loaded from environment variables.

    The freshness and replay windows mirror the remote authority's own
    configuration and must be overridden here, never in individual services.
    """

    # Remote authority
    api_base_url: str = Field(
        default="https://contractor-api.nubewired.com",
        alias="GATEPASS_API_BASE_URL",
    )
    http_timeout_seconds: float = Field(default=10.0, alias="GATEPASS_HTTP_TIMEOUT_SECONDS")
    bundle_timeout_seconds: float = Field(default=30.0, alias="GATEPASS_BUNDLE_TIMEOUT_SECONDS")

    # Local storage
    data_dir: Path = Field(default=Path.home() / ".gatepass", alias="GATEPASS_DATA_DIR")
    encrypted_dir_name: str = Field(default="EncryptedCache", alias="GATEPASS_ENCRYPTED_DIR")
    secrets_dir_name: str = Field(default="secrets", alias="GATEPASS_SECRETS_DIR")

    # Secret storage. "file" keeps keys beside the data they protect; opt-in only.
    secret_backend: Literal["keyring", "file"] = Field(
        default="keyring",
        alias="GATEPASS_SECRET_BACKEND",
    )
    keyring_service: str = Field(default="gatepass", alias="GATEPASS_KEYRING_SERVICE")

    # Offline cache bounds
    cache_max_entries: int = Field(default=500, alias="GATEPASS_CACHE_MAX_ENTRIES")
    cache_max_age_seconds: int = Field(
        default=48 * 3600,
        alias="GATEPASS_CACHE_MAX_AGE_SECONDS",
    )
    history_max_entries: int = Field(default=500, alias="GATEPASS_HISTORY_MAX_ENTRIES")

    # Credential freshness and replay windows
    qr_max_age_seconds: int = Field(default=90, alias="GATEPASS_QR_MAX_AGE_SECONDS")
    nonce_ttl_seconds: int = Field(default=300, alias="GATEPASS_NONCE_TTL_SECONDS")

    # TOTP parameters (must match the contractor app and the authority)
    totp_period_seconds: int = Field(default=30, alias="GATEPASS_TOTP_PERIOD_SECONDS")
    totp_digits: int = Field(default=6, alias="GATEPASS_TOTP_DIGITS")
    totp_skew_steps: int = Field(default=1, alias="GATEPASS_TOTP_SKEW_STEPS")

    # Request signing headers
    signature_header: str = Field(default="X-Signature", alias="GATEPASS_SIGNATURE_HEADER")
    timestamp_header: str = Field(default="X-Timestamp", alias="GATEPASS_TIMESTAMP_HEADER")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def encrypted_dir(self) -> Path:
        """Return the directory holding encrypted blobs."""
        return self.data_dir / self.encrypted_dir_name

    @property
    def secrets_dir(self) -> Path:
        """Return the directory backing the file secret store."""
        return self.data_dir / self.secrets_dir_name

    @property
    def nonce_ledger_path(self) -> Path:
        """Return the path of the (unencrypted) used-nonce ledger."""
        return self.data_dir / "used_nonces.json"


settings = Settings()
