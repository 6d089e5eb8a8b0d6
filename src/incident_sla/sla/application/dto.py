"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime


# ========== Type Aliases for Literals ==========
SLATypeStr = Literal["ack", "resolve"]
SLAStateStr = Literal["pending", "met", "breached"]
TicketStatusStr = Literal["open", "acknowledged", "resolved", "closed"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """
    Request model for ticket creation.

    priority is free text on purpose: an unrecognized tier still gets a
    deadline (the least urgent one), only a missing priority is rejected.
    """
    id: Optional[str] = Field(None, min_length=1, description="Ticket ID, generated when omitted")
    organization_id: str = Field(..., min_length=1, description="Owning organization")
    priority: Optional[str] = Field(None, description="critical, high, medium, low or informational")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp, defaults to now")
    title: Optional[str] = Field(None, max_length=500)


class MilestoneRequest(BaseModel):
    """Optional explicit timestamp for a milestone action."""
    at: Optional[datetime] = Field(None, description="Milestone timestamp, defaults to now")


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Ticket with its SLA fields."""
    id: str
    organization_id: str
    priority: str
    status: TicketStatusStr
    title: Optional[str] = None
    created_at: datetime
    first_acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    sla_target_ack: datetime
    sla_target_resolve: datetime
    breach_flag: Optional[SLATypeStr] = None
    breached_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            organization_id=ticket.organization_id,
            priority=ticket.priority,
            status=ticket.status,
            title=ticket.title,
            created_at=ticket.created_at,
            first_acknowledged_at=ticket.first_acknowledged_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            sla_target_ack=ticket.sla_target_ack,
            sla_target_resolve=ticket.sla_target_resolve,
            breach_flag=ticket.breach_flag,
            breached_at=ticket.breached_at,
        )


class SLAClockResponse(BaseModel):
    """State of one SLA clock."""
    deadline: datetime
    state: SLAStateStr
    met_at: Optional[datetime] = None
    time_remaining: str = Field(..., description="e.g. '1d 2h', '3h 5m', '12m', '0s'")


class TicketSLAResponse(BaseModel):
    """Ticket plus per-clock SLA state."""
    ticket: TicketResponse
    ack: SLAClockResponse
    resolve: SLAClockResponse
    overall_state: SLAStateStr


class BreachRecordResponse(BaseModel):
    ticket_id: str
    sla_type: SLATypeStr
    breached_at: datetime
    duration_minutes_past_deadline: int


class BreachScanResponse(BaseModel):
    breaches: List[BreachRecordResponse] = Field(default_factory=list)
    breach_count: int


class NearBreachWarningResponse(BaseModel):
    ticket_id: str
    organization_id: str
    sla_type: SLATypeStr
    deadline: datetime
    minutes_remaining: float


class NearBreachResponse(BaseModel):
    checked_at: datetime
    lookahead_minutes: int
    ack_count: int
    resolve_count: int
    ack: List[NearBreachWarningResponse] = Field(default_factory=list)
    resolve: List[NearBreachWarningResponse] = Field(default_factory=list)


class ComplianceResponse(BaseModel):
    organization_id: Optional[str] = None
    total_tickets: int
    resolved_within_sla: int
    breached_tickets: int
    compliance_percentage: int = Field(..., ge=0, le=100)
