"""
Escalation Domain Layer
=======================

Entities: User, EscalationRecord, EscalationSummary
"""

from incident_sla.escalation.domain.entities import (
    User,
    EscalationRecord,
    EscalationSummary,
)

__all__ = [
    "User",
    "EscalationRecord",
    "EscalationSummary",
]
