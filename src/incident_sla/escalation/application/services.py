"""
Escalation Application Services
================================

Authorizes escalation requests against the ticket's owning organization
and records them. The ticket store is only read.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from incident_sla.config import EscalationStatus
from incident_sla.core import ForbiddenError, NotFoundError
from incident_sla.escalation.domain import EscalationRecord, EscalationSummary, User
from incident_sla.sla.application import ITicketRepository
from incident_sla.sla.domain import utcnow
from incident_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IUserDirectory(ABC):
    """Identity lookup. Each user carries an organization affiliation."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        pass


class IEscalationRepository(ABC):
    """Append-only escalation store."""

    @abstractmethod
    async def create(self, record: EscalationRecord) -> EscalationRecord:
        pass

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[EscalationRecord]:
        pass


# ========== Application Services ==========

class EscalationService:
    """
    Escalation authorizer/creator.

    Both the target and the escalating user must belong to the ticket's
    organization. Every escalation is authorized on its own, so a ticket
    may be escalated any number of times.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        user_directory: IUserDirectory,
        escalation_repository: IEscalationRepository
    ):
        self._ticket_repo = ticket_repository
        self._directory = user_directory
        self._escalation_repo = escalation_repository

    async def escalate(
        self,
        ticket_id: str,
        escalated_to_email: str,
        escalating_user_id: Optional[str],
        reason: Optional[str] = None
    ) -> EscalationSummary:
        """
        Escalate a ticket to another user of the same organization.

        Raises:
            NotFoundError: ticket or target user does not exist
            ForbiddenError: target or escalating user is outside the
                ticket's organization, or the escalating user is unknown
        """
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)

        target = await self._directory.find_by_email(escalated_to_email)
        if target is None:
            raise NotFoundError("User", escalated_to_email)

        if not target.belongs_to(ticket.organization_id):
            self._deny(ticket_id, "target", target.id)
            raise ForbiddenError(
                "Cannot escalate to a user in a different organization",
                {"ticket_id": ticket_id, "escalated_to": escalated_to_email}
            )

        escalator = await self._directory.find_by_id(escalating_user_id) if escalating_user_id else None
        if escalator is None or not escalator.belongs_to(ticket.organization_id):
            self._deny(ticket_id, "escalator", escalating_user_id)
            raise ForbiddenError(
                "Escalating user is not a member of the ticket's organization",
                {"ticket_id": ticket_id, "escalating_user_id": escalating_user_id}
            )

        record = await self._escalation_repo.create(
            EscalationRecord(
                ticket_id=ticket_id,
                escalated_to_user_id=target.id,
                escalated_by_user_id=escalator.id,
                reason=reason,
                status=EscalationStatus.PENDING,
                escalated_at=utcnow(),
            )
        )

        logger.info(
            "Ticket escalated",
            extra={
                "ticket_id": ticket_id,
                "escalation_id": record.id,
                "escalated_to_user_id": target.id,
                "escalated_by_user_id": escalator.id,
                "escalated_to_role": target.role
            }
        )

        return EscalationSummary(
            ticket_id=ticket_id,
            escalated_to_role=target.role,
            timestamp=record.escalated_at,
        )

    async def list_for_ticket(self, ticket_id: str) -> List[EscalationRecord]:
        """Escalation history of a ticket, oldest first."""
        if await self._ticket_repo.get_by_id(ticket_id) is None:
            raise NotFoundError("Ticket", ticket_id)
        return await self._escalation_repo.list_for_ticket(ticket_id)

    @staticmethod
    def _deny(ticket_id: str, party: str, user_id: Optional[str]) -> None:
        logger.warning(
            "Escalation denied",
            extra={"ticket_id": ticket_id, "party": party, "user_id": user_id}
        )
