"""
SLA Controllers (API Routes)
=============================

FastAPI routes for ticket lifecycle and SLA monitoring endpoints.

Controllers are thin - they delegate to application services.
Application errors are mapped to status codes by the shared exception
handler, not here.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from incident_sla.infrastructure.database import get_session_maker
from incident_sla.sla.application import (
    TicketLifecycleService, BreachScanner, NearBreachNotifier, SLAReportService,
    ITicketRepository, INotifier,
    TicketCreateRequest, MilestoneRequest, TicketResponse,
    SLAClockResponse, TicketSLAResponse,
    BreachRecordResponse, BreachScanResponse,
    NearBreachWarningResponse, NearBreachResponse,
    ComplianceResponse
)
from incident_sla.sla.domain import SLACalculator, SLARuleTable
from incident_sla.sla.infrastructure import SQLAlchemyTicketRepository, LoggingNotifier
from incident_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "id": "INC-1001",
    "organization_id": "org-acme",
    "priority": "critical",
    "created_at": "2025-01-01T00:00:00Z",
    "title": "Payment gateway returning 502"
}

TICKET_SLA_RESPONSE_EXAMPLE = {
    "ticket": {
        "id": "INC-1001",
        "organization_id": "org-acme",
        "priority": "critical",
        "status": "open",
        "title": "Payment gateway returning 502",
        "created_at": "2025-01-01T00:00:00Z",
        "first_acknowledged_at": None,
        "resolved_at": None,
        "closed_at": None,
        "sla_target_ack": "2025-01-01T00:15:00Z",
        "sla_target_resolve": "2025-01-01T04:00:00Z",
        "breach_flag": None,
        "breached_at": None
    },
    "ack": {"deadline": "2025-01-01T00:15:00Z", "state": "pending", "met_at": None, "time_remaining": "12m"},
    "resolve": {"deadline": "2025-01-01T04:00:00Z", "state": "pending", "met_at": None, "time_remaining": "3h 57m"},
    "overall_state": "pending"
}


# ========== Dependencies ==========

def get_ticket_repository() -> ITicketRepository:
    """Ticket store bound to the application's session factory."""
    return SQLAlchemyTicketRepository(get_session_maker())


def get_notifier(request: Request) -> INotifier:
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or LoggingNotifier()


def get_rule_table(request: Request) -> SLARuleTable:
    provider = getattr(request.app.state, "sla_config", None)
    if provider is None:
        return SLACalculator.default_table()
    return provider.get_rule_table()


def get_lifecycle_service(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    notifier: INotifier = Depends(get_notifier),
    rules: SLARuleTable = Depends(get_rule_table)
) -> TicketLifecycleService:
    return TicketLifecycleService(ticket_repo, notifier, rules)


def get_breach_scanner(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    notifier: INotifier = Depends(get_notifier)
) -> BreachScanner:
    return BreachScanner(ticket_repo, notifier)


def get_near_breach_notifier(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    notifier: INotifier = Depends(get_notifier)
) -> NearBreachNotifier:
    return NearBreachNotifier(ticket_repo, notifier)


def get_report_service(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository)
) -> SLAReportService:
    return SLAReportService(ticket_repo)


# ========== Ticket Lifecycle ==========

@router.post(
    "/tickets",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket and stamp its SLA deadlines",
    description="""
    Create a ticket. Acknowledgment and resolution deadlines are computed
    from `priority` and `created_at` and never change afterwards.

    An unrecognized priority gets the least urgent tier's windows.
    A missing priority is rejected with 422.
    """,
    responses={
        201: {"description": "Ticket created"},
        409: {"description": "Ticket id already exists"},
        422: {"description": "Priority missing"}
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": TICKET_CREATE_EXAMPLE}}}
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.on_create(
        organization_id=request.organization_id,
        priority=request.priority,
        created_at=request.created_at,
        ticket_id=request.id,
        title=request.title
    )
    return TicketResponse.from_domain(ticket)


@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAResponse,
    summary="Get ticket SLA status",
    responses={
        200: {
            "description": "Ticket SLA information",
            "content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket_sla(
    ticket_id: str,
    report_service: SLAReportService = Depends(get_report_service)
):
    view = await report_service.ticket_status(ticket_id)
    return TicketSLAResponse(
        ticket=TicketResponse.from_domain(view["ticket"]),
        ack=SLAClockResponse(**view["ack"]),
        resolve=SLAClockResponse(**view["resolve"]),
        overall_state=view["overall_state"]
    )


@router.post(
    "/tickets/{ticket_id}/acknowledge",
    response_model=TicketResponse,
    summary="Record first acknowledgment",
    description="Idempotent: the first acknowledgment timestamp is kept.",
    responses={404: {"description": "Ticket not found"}}
)
async def acknowledge_ticket(
    ticket_id: str,
    body: Optional[MilestoneRequest] = None,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.on_acknowledge(ticket_id, body.at if body else None)
    return TicketResponse.from_domain(ticket)


@router.post(
    "/tickets/{ticket_id}/resolve",
    response_model=TicketResponse,
    summary="Record resolution",
    responses={
        404: {"description": "Ticket not found"},
        409: {"description": "Ticket not acknowledged, or timestamp precedes acknowledgment"}
    }
)
async def resolve_ticket(
    ticket_id: str,
    body: Optional[MilestoneRequest] = None,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.on_resolve(ticket_id, body.at if body else None)
    return TicketResponse.from_domain(ticket)


@router.post(
    "/tickets/{ticket_id}/close",
    response_model=TicketResponse,
    summary="Record closure",
    responses={
        404: {"description": "Ticket not found"},
        409: {"description": "Ticket not resolved, or timestamp precedes resolution"}
    }
)
async def close_ticket(
    ticket_id: str,
    body: Optional[MilestoneRequest] = None,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.on_close(ticket_id, body.at if body else None)
    return TicketResponse.from_domain(ticket)


# ========== Sweeps ==========

@router.post(
    "/scans/breach",
    response_model=BreachScanResponse,
    summary="Run one breach scan",
    description="""
    Flags tickets whose acknowledgment or resolution deadline has passed.
    Only breaches newly flagged by this call are returned, so repeated
    calls never report the same ticket twice.
    """
)
async def run_breach_scan(scanner: BreachScanner = Depends(get_breach_scanner)):
    records = await scanner.run()
    return BreachScanResponse(
        breaches=[BreachRecordResponse(**record.to_dict()) for record in records],
        breach_count=len(records)
    )


@router.post(
    "/scans/near-breach",
    response_model=NearBreachResponse,
    summary="Run one near-breach sweep",
    description="Lists tickets whose deadline falls within the lookahead window. Read-only."
)
async def run_near_breach_sweep(
    lookahead_minutes: Optional[int] = Query(None, ge=1, le=1440, description="Defaults to the configured lookahead"),
    notifier: NearBreachNotifier = Depends(get_near_breach_notifier)
):
    report = await notifier.run(lookahead_minutes=lookahead_minutes)

    def _to_response(warning):
        return NearBreachWarningResponse(
            ticket_id=warning.ticket_id,
            organization_id=warning.organization_id,
            sla_type=warning.sla_type,
            deadline=warning.deadline,
            minutes_remaining=warning.minutes_remaining
        )

    return NearBreachResponse(
        checked_at=report.checked_at,
        lookahead_minutes=report.lookahead_minutes,
        ack_count=report.ack_count,
        resolve_count=report.resolve_count,
        ack=[_to_response(w) for w in report.ack],
        resolve=[_to_response(w) for w in report.resolve]
    )


# ========== Reporting ==========

@router.get(
    "/compliance",
    response_model=ComplianceResponse,
    summary="Resolution SLA compliance rate",
    description="Percentage of tickets resolved within their resolution deadline. 100 when there are no tickets."
)
async def get_compliance(
    organization_id: Optional[str] = Query(None, description="Restrict to one organization"),
    report_service: SLAReportService = Depends(get_report_service)
):
    return ComplianceResponse(**await report_service.compliance(organization_id))


sla_router = router
