"""AES-GCM encrypted blob storage backed by files and a secret-store key."""

from __future__ import annotations

import logging
import os
import re
import secrets
import shutil
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Final, TypeVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_json

from gatepass.core.secret_store import SecretStore
from gatepass.core.settings import Settings, settings

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_NAME: Final[str] = "gatepass_encryption_key"
KEY_LENGTH_BYTES: Final[int] = 32
NONCE_LENGTH_BYTES: Final[int] = 12
TAG_LENGTH_BYTES: Final[int] = 16
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")

T = TypeVar("T")


class EncryptedStoreError(RuntimeError):
    """Base exception for encrypted store failures."""


class NotFoundError(EncryptedStoreError):
    """Raised when no blob exists for a key."""


class DecryptError(EncryptedStoreError):
    """Raised when a blob fails authentication or cannot be decoded."""


class EncryptedStore:
    """Authenticated-encryption key/value persistence.

    Each value is serialized to JSON, sealed with AES-256-GCM under a random
    96-bit nonce, and written atomically to its own file as
    ``nonce || ciphertext || tag``. The blob name is bound as associated data.
    The symmetric key lives only in the secret store.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        directory: Path | None = None,
        config: Settings | None = None,
    ) -> None:
        cfg = config or settings
        self._secret_store = secret_store
        self._directory = Path(directory) if directory is not None else cfg.encrypted_dir
        self._directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._key_lock = Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    # --- Key management -----------------------------------------------------------
    def get_or_create_key(self) -> bytes:
        """Return the 256-bit store key, generating and persisting it on first use."""
        with self._key_lock:
            existing = self._secret_store.get(ENCRYPTION_KEY_NAME)
            if existing is not None:
                if len(existing) == KEY_LENGTH_BYTES:
                    return existing
                logger.warning("Stored encryption key has invalid length; generating a new one")

            key = AESGCM.generate_key(bit_length=KEY_LENGTH_BYTES * 8)
            self._secret_store.set(ENCRYPTION_KEY_NAME, key)
            return key

    # --- Public API ---------------------------------------------------------------
    def save(self, value: Any, key: str) -> None:
        """Serialize, encrypt and atomically write ``value`` under ``key``."""
        plaintext = to_json(value)
        nonce = secrets.token_bytes(NONCE_LENGTH_BYTES)
        sealed = AESGCM(self.get_or_create_key()).encrypt(nonce, plaintext, key.encode())
        self._write_atomic(self._path(key), nonce + sealed)

    def load(self, key: str, type_: type[T] | Any = Any) -> T:
        """Read, decrypt and decode the value stored under ``key``.

        Raises:
            NotFoundError: If no blob exists.
            DecryptError: On a tag mismatch, truncated blob or undecodable plaintext.
        """
        path = self._path(key)
        try:
            blob = path.read_bytes()
        except FileNotFoundError as err:
            raise NotFoundError(f"No encrypted value for {key!r}") from err

        if len(blob) < NONCE_LENGTH_BYTES + TAG_LENGTH_BYTES:
            raise DecryptError(f"Encrypted value for {key!r} is truncated")

        nonce, sealed = blob[:NONCE_LENGTH_BYTES], blob[NONCE_LENGTH_BYTES:]
        try:
            plaintext = AESGCM(self.get_or_create_key()).decrypt(nonce, sealed, key.encode())
        except InvalidTag as err:
            raise DecryptError(f"Authentication failed for {key!r}") from err

        try:
            return TypeAdapter(type_).validate_json(plaintext)
        except ValidationError as err:
            raise DecryptError(f"Decrypted value for {key!r} has unexpected shape") from err

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def delete_all(self) -> None:
        """Remove every blob; the encryption key itself is kept."""
        shutil.rmtree(self._directory, ignore_errors=True)
        self._directory.mkdir(mode=0o700, parents=True, exist_ok=True)

    # --- Helpers ------------------------------------------------------------------
    def _path(self, key: str) -> Path:
        if not _SAFE_NAME.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._directory / key

    def _write_atomic(self, path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
