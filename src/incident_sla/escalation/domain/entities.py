"""
Escalation Domain Entities
===========================

Pure Python entities for the escalation module.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from incident_sla.config import EscalationStatus
from incident_sla.sla.domain import ensure_utc, utcnow


@dataclass(frozen=True)
class User:
    """A directory principal. Only organization affiliation and role matter here."""
    id: str
    email: str
    role: str
    organization_id: str

    def belongs_to(self, organization_id: str) -> bool:
        return self.organization_id == organization_id


@dataclass
class EscalationRecord:
    """
    Audit record of one escalation request.

    Append-only: a ticket may carry any number of these.
    """
    ticket_id: str
    escalated_to_user_id: str
    escalated_by_user_id: str
    reason: Optional[str] = None
    status: str = EscalationStatus.PENDING
    escalated_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self):
        self.escalated_at = ensure_utc(self.escalated_at)


@dataclass(frozen=True)
class EscalationSummary:
    """What the caller learns about a successful escalation."""
    ticket_id: str
    escalated_to_role: str
    timestamp: datetime
