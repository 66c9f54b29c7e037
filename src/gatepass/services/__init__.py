"""Validation engine services for the gatepass scanner."""

from .authority import AuthorityClient, AuthorityError, AuthorityUnavailableError
from .encrypted_store import DecryptError, EncryptedStore, NotFoundError
from .history import ScanHistory
from .offline_cache import OfflineValidationCache
from .replay import NonceLedger
from .session import SessionManager
from .signing import RequestSigner
from .totp import TOTPVerifier
from .validation import ValidationOrchestrator

__all__ = [
    "AuthorityClient",
    "AuthorityError",
    "AuthorityUnavailableError",
    "DecryptError",
    "EncryptedStore",
    "NonceLedger",
    "NotFoundError",
    "OfflineValidationCache",
    "RequestSigner",
    "ScanHistory",
    "SessionManager",
    "TOTPVerifier",
    "ValidationOrchestrator",
]
