"""Grant/deny outcome of a validation attempt."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gatepass.schemas.credential import ContractorInfo
from gatepass.schemas.validation import ValidationResponse


class DecisionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class Decision:
    """Access decision plus the reason or contractor behind it."""

    status: DecisionStatus
    contractor: ContractorInfo | None = None
    reason: str | None = None
    offline: bool = False

    @classmethod
    def grant(cls, contractor: ContractorInfo, *, offline: bool = False) -> Decision:
        return cls(DecisionStatus.GRANTED, contractor=contractor, offline=offline)

    @classmethod
    def deny(cls, reason: str, *, offline: bool = False) -> Decision:
        return cls(DecisionStatus.DENIED, reason=reason, offline=offline)

    @classmethod
    def from_response(cls, response: ValidationResponse) -> Decision:
        """Map an authoritative server response onto a decision."""
        if response.is_granted and response.contractor is not None:
            return cls.grant(response.contractor)
        return cls.deny(response.reason or "Access denied")

    @property
    def is_granted(self) -> bool:
        return self.status is DecisionStatus.GRANTED
