"""Pydantic schemas and value types for the gatepass engine."""

from .bundle import BundleContractor, OfflineBundle
from .credential import CachedCredential, ContractorInfo, UsedNonce
from .decision import Decision, DecisionStatus
from .history import ScanHistoryEntry
from .qr import QRPayload
from .validation import (
    AssignedSite,
    LoginRequest,
    LoginResponse,
    ReasonEnvelope,
    ValidationRequest,
    ValidationResponse,
)

__all__ = [
    "AssignedSite",
    "BundleContractor",
    "CachedCredential",
    "ContractorInfo",
    "Decision",
    "DecisionStatus",
    "LoginRequest",
    "LoginResponse",
    "OfflineBundle",
    "QRPayload",
    "ReasonEnvelope",
    "ScanHistoryEntry",
    "UsedNonce",
    "ValidationRequest",
    "ValidationResponse",
]
