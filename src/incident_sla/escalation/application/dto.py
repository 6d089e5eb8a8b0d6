"""
Escalation DTOs
================

Pydantic models for the escalation API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


EscalationStatusStr = Literal["PENDING", "ACCEPTED", "REJECTED"]


class EscalationRequest(BaseModel):
    """Escalate a ticket. The escalating user comes from the X-User-Id header."""
    escalated_to_email: str = Field(..., min_length=3, description="Email of the user to escalate to")
    reason: Optional[str] = Field(None, max_length=1000)


class EscalationSummaryResponse(BaseModel):
    ticket_id: str
    escalated_to_role: str
    timestamp: datetime


class EscalationRecordResponse(BaseModel):
    id: str
    ticket_id: str
    escalated_to_user_id: str
    escalated_by_user_id: str
    reason: Optional[str] = None
    status: EscalationStatusStr
    escalated_at: datetime

    @classmethod
    def from_domain(cls, record) -> "EscalationRecordResponse":
        return cls(
            id=record.id,
            ticket_id=record.ticket_id,
            escalated_to_user_id=record.escalated_to_user_id,
            escalated_by_user_id=record.escalated_by_user_id,
            reason=record.reason,
            status=record.status,
            escalated_at=record.escalated_at,
        )


class EscalationHistoryResponse(BaseModel):
    ticket_id: str
    escalations: List[EscalationRecordResponse] = Field(default_factory=list)
    total_count: int
