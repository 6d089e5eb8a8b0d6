"""
Escalation Infrastructure Layer
================================

- Models: users and escalated_incidents tables
- Repositories: SQLAlchemy directory and escalation store
"""

from incident_sla.escalation.infrastructure.models import UserModel, EscalationModel
from incident_sla.escalation.infrastructure.repositories import (
    SQLAlchemyUserDirectory,
    SQLAlchemyEscalationRepository,
)

__all__ = [
    "UserModel",
    "EscalationModel",
    "SQLAlchemyUserDirectory",
    "SQLAlchemyEscalationRepository",
]
