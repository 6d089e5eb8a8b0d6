"""
SLA Application Layer
======================

Application layer for the incident SLA module.

Contains:
- Services: ticket lifecycle, breach scan, near-breach sweep, reporting
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from incident_sla.sla.application.dto import (
    TicketCreateRequest,
    MilestoneRequest,
    TicketResponse,
    SLAClockResponse,
    TicketSLAResponse,
    BreachRecordResponse,
    BreachScanResponse,
    NearBreachWarningResponse,
    NearBreachResponse,
    ComplianceResponse,
)
from incident_sla.sla.application.services import (
    TicketLifecycleService,
    BreachScanner,
    NearBreachNotifier,
    SLAReportService,
    ITicketRepository,
    INotifier,
    ISLAConfigProvider,
)

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "MilestoneRequest",
    "TicketResponse",
    "SLAClockResponse",
    "TicketSLAResponse",
    "BreachRecordResponse",
    "BreachScanResponse",
    "NearBreachWarningResponse",
    "NearBreachResponse",
    "ComplianceResponse",
    # Services
    "TicketLifecycleService",
    "BreachScanner",
    "NearBreachNotifier",
    "SLAReportService",
    # Interfaces
    "ITicketRepository",
    "INotifier",
    "ISLAConfigProvider",
]
