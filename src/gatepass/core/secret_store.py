"""Secure secret storage abstraction.

The engine depends only on ``get``/``set``/``delete``. :class:`KeyringSecretStore`
delegates to the platform keychain (macOS Keychain, Windows Credential Locker,
Secret Service on Linux) and is the default. :class:`FileSecretStore` writes
keys as owner-only files and offers no protection once the data directory is
copied off the device; use it only where no keychain exists.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import tempfile
from pathlib import Path
from threading import Lock
from typing import Protocol

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from gatepass.core.settings import Settings

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


class SecretStoreError(RuntimeError):
    """Raised when secure storage cannot be read or written at all."""


class SecretStore(Protocol):
    """Minimal interface over a keychain-equivalent secret store."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySecretStore:
    """Process-local secret store used by tests and ephemeral terminals."""

    def __init__(self) -> None:
        self._items: dict[str, bytes] = {}
        self._lock = Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class FileSecretStore:
    """Secret store backed by owner-only files in a private directory.

    Anyone who can read the directory can read the keys. Select it with
    ``GATEPASS_SECRET_BACKEND=file`` only on hosts without a keychain.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        try:
            self._directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as err:
            raise SecretStoreError(f"Cannot create secret directory: {err}") from err

    def _path(self, key: str) -> Path:
        if not _SAFE_NAME.match(key):
            raise ValueError(f"Invalid secret name: {key!r}")
        return self._directory / key

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as err:
            raise SecretStoreError(f"Cannot read secret {key!r}: {err}") from err

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
            try:
                os.fchmod(fd, 0o600)
                with os.fdopen(fd, "wb") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as err:
            raise SecretStoreError(f"Cannot write secret {key!r}: {err}") from err

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as err:
            raise SecretStoreError(f"Cannot delete secret {key!r}: {err}") from err


class KeyringSecretStore:
    """Secret store backed by the operating system keychain via ``keyring``.

    Values are base64-encoded because keychain backends store text.
    """

    def __init__(self, service: str = "gatepass", backend: KeyringBackend | None = None) -> None:
        self._service = service
        try:
            self._backend = backend or keyring.get_keyring()
        except KeyringError as err:
            raise SecretStoreError(f"No usable keychain backend: {err}") from err

    def get(self, key: str) -> bytes | None:
        try:
            encoded = self._backend.get_password(self._service, key)
        except KeyringError as err:
            raise SecretStoreError(f"Cannot read secret {key!r}: {err}") from err
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as err:
            raise SecretStoreError(f"Secret {key!r} is not valid base64") from err

    def set(self, key: str, value: bytes) -> None:
        encoded = base64.b64encode(bytes(value)).decode("ascii")
        try:
            self._backend.set_password(self._service, key, encoded)
        except KeyringError as err:
            raise SecretStoreError(f"Cannot write secret {key!r}: {err}") from err

    def delete(self, key: str) -> None:
        try:
            self._backend.delete_password(self._service, key)
        except PasswordDeleteError:
            return
        except KeyringError as err:
            raise SecretStoreError(f"Cannot delete secret {key!r}: {err}") from err


def default_secret_store(config: Settings) -> SecretStore:
    """Return the secret store selected by ``config.secret_backend``."""
    if config.secret_backend == "file":
        logger.warning(
            "Using file secret store in %s; keys sit beside the encrypted cache",
            config.secrets_dir,
        )
        return FileSecretStore(config.secrets_dir)
    return KeyringSecretStore(config.keyring_service)
