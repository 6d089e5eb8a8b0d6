"""
Escalation Controllers (API Routes)
====================================

FastAPI routes for escalating tickets.

The escalating principal is identified by the X-User-Id header, set by
the authenticating gateway in front of this service.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from incident_sla.escalation.application import (
    EscalationService,
    IUserDirectory,
    IEscalationRepository,
    EscalationRequest,
    EscalationSummaryResponse,
    EscalationRecordResponse,
    EscalationHistoryResponse,
)
from incident_sla.escalation.infrastructure import (
    SQLAlchemyUserDirectory,
    SQLAlchemyEscalationRepository,
)
from incident_sla.infrastructure.database import get_session_maker
from incident_sla.sla.application import ITicketRepository
from incident_sla.sla.interfaces.controllers import get_ticket_repository

router = APIRouter(prefix="/escalations", tags=["Escalation"])


# ========== Dependencies ==========

def get_user_directory() -> IUserDirectory:
    return SQLAlchemyUserDirectory(get_session_maker())


def get_escalation_repository() -> IEscalationRepository:
    return SQLAlchemyEscalationRepository(get_session_maker())


def get_escalation_service(
    ticket_repo: ITicketRepository = Depends(get_ticket_repository),
    directory: IUserDirectory = Depends(get_user_directory),
    escalation_repo: IEscalationRepository = Depends(get_escalation_repository)
) -> EscalationService:
    return EscalationService(ticket_repo, directory, escalation_repo)


# ========== Route Handlers ==========

@router.post(
    "/tickets/{ticket_id}",
    response_model=EscalationSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Escalate a ticket",
    description="""
    Escalate a ticket to another user of the ticket's organization.

    Both the target and the escalating user (`X-User-Id`) must belong to the
    organization that owns the ticket. The ticket itself is not modified.
    """,
    responses={
        403: {"description": "Target or escalating user outside the ticket's organization"},
        404: {"description": "Ticket or target user not found"}
    }
)
async def escalate_ticket(
    ticket_id: str,
    request: EscalationRequest,
    x_user_id: Optional[str] = Header(None, description="Escalating user ID"),
    service: EscalationService = Depends(get_escalation_service)
):
    summary = await service.escalate(
        ticket_id=ticket_id,
        escalated_to_email=request.escalated_to_email,
        escalating_user_id=x_user_id,
        reason=request.reason
    )
    return EscalationSummaryResponse(
        ticket_id=summary.ticket_id,
        escalated_to_role=summary.escalated_to_role,
        timestamp=summary.timestamp
    )


@router.get(
    "/tickets/{ticket_id}",
    response_model=EscalationHistoryResponse,
    summary="List a ticket's escalations",
    responses={404: {"description": "Ticket not found"}}
)
async def list_escalations(
    ticket_id: str,
    service: EscalationService = Depends(get_escalation_service)
):
    records = await service.list_for_ticket(ticket_id)
    return EscalationHistoryResponse(
        ticket_id=ticket_id,
        escalations=[EscalationRecordResponse.from_domain(r) for r in records],
        total_count=len(records)
    )


escalation_router = router
