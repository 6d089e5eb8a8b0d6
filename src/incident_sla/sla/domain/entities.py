"""
SLA Domain Entities
====================

Pure Python domain entities for incident SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from incident_sla.config import (
    BreachType, EventType, Milestone, SLAState, SLAType, TicketStatus,
    SLA_TYPE_MILESTONES
)
from incident_sla.core import InvalidTransitionError
from incident_sla.sla.domain.value_objects import (
    SLACalculator, SLARuleTable, ensure_utc, utcnow
)


@dataclass
class IncidentTicket:
    """
    Incident ticket as seen by the SLA engine.

    Deadlines are stamped once at creation. Milestones and the breach flag
    are write-once; all other ticket attributes are opaque to this module.
    """

    id: str
    organization_id: str
    priority: str
    created_at: datetime
    sla_target_ack: datetime
    sla_target_resolve: datetime

    first_acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    breach_flag: Optional[str] = None
    breached_at: Optional[datetime] = None

    title: Optional[str] = None

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)
        self.sla_target_ack = ensure_utc(self.sla_target_ack)
        self.sla_target_resolve = ensure_utc(self.sla_target_resolve)
        self.first_acknowledged_at = ensure_utc(self.first_acknowledged_at)
        self.resolved_at = ensure_utc(self.resolved_at)
        self.closed_at = ensure_utc(self.closed_at)
        self.breached_at = ensure_utc(self.breached_at)

    @classmethod
    def open(
        cls,
        ticket_id: str,
        organization_id: str,
        priority: str,
        created_at: datetime,
        rules: Optional[SLARuleTable] = None,
        title: Optional[str] = None
    ) -> "IncidentTicket":
        """Create a ticket with both deadlines stamped from its priority."""
        created_at = ensure_utc(created_at)
        deadlines = SLACalculator.compute_deadlines(created_at, priority, rules)
        return cls(
            id=ticket_id,
            organization_id=organization_id,
            priority=priority,
            created_at=created_at,
            sla_target_ack=deadlines.ack_by,
            sla_target_resolve=deadlines.resolve_by,
            title=title,
        )

    @property
    def status(self) -> str:
        if self.closed_at:
            return TicketStatus.CLOSED
        if self.resolved_at:
            return TicketStatus.RESOLVED
        if self.first_acknowledged_at:
            return TicketStatus.ACKNOWLEDGED
        return TicketStatus.OPEN

    def deadline_for(self, sla_type: str) -> datetime:
        return self.sla_target_ack if sla_type == SLAType.ACK else self.sla_target_resolve

    def milestone_for(self, sla_type: str) -> Optional[datetime]:
        return getattr(self, SLA_TYPE_MILESTONES[sla_type])

    # ---- milestone transitions ----
    # Each returns True when the milestone was recorded, False when it was
    # already set. Out-of-order transitions raise InvalidTransitionError.

    def acknowledge(self, at: Optional[datetime] = None) -> bool:
        at = ensure_utc(at) or utcnow()
        if self.first_acknowledged_at is not None:
            return False
        if at < self.created_at:
            raise InvalidTransitionError(self.id, Milestone.ACKNOWLEDGED, "timestamp precedes ticket creation")
        self.first_acknowledged_at = at
        return True

    def resolve(self, at: Optional[datetime] = None) -> bool:
        at = ensure_utc(at) or utcnow()
        if self.resolved_at is not None:
            return False
        if self.first_acknowledged_at is None:
            raise InvalidTransitionError(self.id, Milestone.RESOLVED, "ticket has not been acknowledged")
        if at < self.first_acknowledged_at:
            raise InvalidTransitionError(self.id, Milestone.RESOLVED, "timestamp precedes acknowledgment")
        self.resolved_at = at
        return True

    def close(self, at: Optional[datetime] = None) -> bool:
        at = ensure_utc(at) or utcnow()
        if self.closed_at is not None:
            return False
        if self.resolved_at is None:
            raise InvalidTransitionError(self.id, Milestone.CLOSED, "ticket has not been resolved")
        if at < self.resolved_at:
            raise InvalidTransitionError(self.id, Milestone.CLOSED, "timestamp precedes resolution")
        self.closed_at = at
        return True

    # ---- breach predicates ----

    def is_breach_candidate(self, sla_type: str, now: datetime) -> bool:
        """Deadline passed, milestone missing, not yet flagged."""
        return (
            self.breach_flag is None
            and self.milestone_for(sla_type) is None
            and self.deadline_for(sla_type) < now
        )

    def is_near_breach(self, sla_type: str, now: datetime, until: datetime) -> bool:
        """Deadline in (now, until], milestone missing, not yet flagged."""
        deadline = self.deadline_for(sla_type)
        return (
            self.breach_flag is None
            and self.milestone_for(sla_type) is None
            and now < deadline <= until
        )

    def mark_breached(self, breach_type: str, at: datetime) -> bool:
        """Set the breach flag if still unset and the clock is still unmet."""
        sla_type = SLAType.ACK if breach_type == BreachType.ACK else SLAType.RESOLVE
        if self.breach_flag is not None or self.milestone_for(sla_type) is not None:
            return False
        self.breach_flag = breach_type
        self.breached_at = ensure_utc(at)
        return True

    # ---- reporting ----

    def sla_state(self, sla_type: str, now: datetime) -> str:
        """met / breached / pending for one clock."""
        deadline = self.deadline_for(sla_type)
        met_at = self.milestone_for(sla_type)

        if self.breach_flag == sla_type:
            return SLAState.BREACHED
        if met_at is not None:
            return SLAState.MET if met_at <= deadline else SLAState.BREACHED
        if now > deadline:
            return SLAState.BREACHED
        return SLAState.PENDING

    def overall_sla_state(self, now: datetime) -> str:
        states = {self.sla_state(SLAType.ACK, now), self.sla_state(SLAType.RESOLVE, now)}
        if SLAState.BREACHED in states:
            return SLAState.BREACHED
        if states == {SLAState.MET}:
            return SLAState.MET
        return SLAState.PENDING

    @property
    def resolved_within_sla(self) -> bool:
        return self.resolved_at is not None and self.resolved_at <= self.sla_target_resolve


@dataclass(frozen=True)
class TicketEvent:
    """Domain event emitted when a milestone transition is applied."""
    ticket_id: str
    organization_id: str
    previous_status: Optional[str]
    new_status: str
    occurred_at: datetime
    event_type: str = EventType.STATUS_CHANGED
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "ticket_id": self.ticket_id,
            "organization_id": self.organization_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "occurred_at": self.occurred_at.isoformat(),
            **self.details,
        }
