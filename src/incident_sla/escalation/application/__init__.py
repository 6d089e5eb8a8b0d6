"""
Escalation Application Layer
=============================

Contains:
- Services: EscalationService
- DTOs: request/response models
- Interfaces: IUserDirectory, IEscalationRepository
"""

from incident_sla.escalation.application.dto import (
    EscalationRequest,
    EscalationSummaryResponse,
    EscalationRecordResponse,
    EscalationHistoryResponse,
)
from incident_sla.escalation.application.services import (
    EscalationService,
    IUserDirectory,
    IEscalationRepository,
)

__all__ = [
    # DTOs
    "EscalationRequest",
    "EscalationSummaryResponse",
    "EscalationRecordResponse",
    "EscalationHistoryResponse",
    # Services
    "EscalationService",
    # Interfaces
    "IUserDirectory",
    "IEscalationRepository",
]
