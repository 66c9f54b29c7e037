"""Schema for the on-device scan log."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from gatepass.schemas.decision import Decision, DecisionStatus


class ScanHistoryEntry(BaseModel):
    """One rendered decision, as shown to the guard afterwards."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime
    contractor_name: str = "Unknown"
    company: str | None = None
    email: str | None = None
    result: DecisionStatus
    reason: str | None = None
    offline: bool = False

    @classmethod
    def from_decision(cls, decision: Decision, timestamp: datetime) -> ScanHistoryEntry:
        contractor = decision.contractor
        return cls(
            timestamp=timestamp,
            contractor_name=contractor.full_name if contractor is not None else "Unknown",
            company=contractor.company if contractor is not None else None,
            email=contractor.email if contractor is not None else None,
            result=decision.status,
            reason=decision.reason,
            offline=decision.offline,
        )
