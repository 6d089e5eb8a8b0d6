"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, notifiers),
  not concrete implementations
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import uuid4

from incident_sla.config import (
    BreachType, Milestone, SLAType, SLA_TYPE_MILESTONES, settings
)
from incident_sla.core import InvalidPriorityError, NotFoundError
from incident_sla.sla.domain import (
    IncidentTicket, TicketEvent, BreachRecord, NearBreachWarning,
    NearBreachReport, SLACalculator, SLARuleTable, ensure_utc, utcnow
)
from incident_sla.shared.infrastructure.logging import get_logger, get_ticket_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """
    Interface for ticket data access.

    Implementations must make set_milestone and conditional_set_breach_flag
    single atomic compare-and-set operations against the store.
    """

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[IncidentTicket]:
        """Get ticket by ID."""

    @abstractmethod
    async def create(self, ticket: IncidentTicket) -> IncidentTicket:
        """Persist a newly created ticket."""

    @abstractmethod
    async def set_milestone(self, ticket_id: str, milestone: str, at: datetime) -> bool:
        """Write a milestone timestamp only if it is still null."""

    @abstractmethod
    async def find_breach_candidates(self, sla_type: str, now: datetime) -> List[IncidentTicket]:
        """Tickets past the deadline for sla_type with the milestone and breach flag null."""

    @abstractmethod
    async def find_near_breach(
        self,
        sla_type: str,
        now: datetime,
        until: datetime
    ) -> List[IncidentTicket]:
        """Tickets whose deadline lies in (now, until] with the milestone and breach flag null."""

    @abstractmethod
    async def conditional_set_breach_flag(
        self,
        ticket_id: str,
        breach_type: str,
        breached_at: datetime
    ) -> bool:
        """Set breach_flag only if it is null and the clock is unmet. True on success."""

    @abstractmethod
    async def list(self, organization_id: Optional[str] = None) -> List[IncidentTicket]:
        """List tickets, optionally for one organization."""


class INotifier(ABC):
    """Sink for engine events. Delivery transport is opaque to the engine."""

    @abstractmethod
    async def publish_event(self, event: TicketEvent) -> None:
        """Forward a milestone transition event."""

    @abstractmethod
    async def notify_breaches(self, records: List[BreachRecord]) -> None:
        """Forward breaches newly flagged by a scan."""

    @abstractmethod
    async def notify_near_breaches(self, report: NearBreachReport) -> None:
        """Forward a near-breach sweep result."""


class ISLAConfigProvider(ABC):
    """Interface for SLA rule table access."""

    @abstractmethod
    def get_rule_table(self) -> SLARuleTable:
        """Get the SLA rule table loaded at startup."""


# ========== Application Services ==========

class TicketLifecycleService:
    """
    Ticket state tracker.

    Stamps deadlines at creation and records write-once, ordered milestones.
    Every applied transition emits a status_changed event.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        notifier: INotifier,
        rules: Optional[SLARuleTable] = None
    ):
        self._ticket_repo = ticket_repository
        self._notifier = notifier
        self._rules = rules

    async def on_create(
        self,
        organization_id: str,
        priority: Optional[str],
        created_at: Optional[datetime] = None,
        ticket_id: Optional[str] = None,
        title: Optional[str] = None
    ) -> IncidentTicket:
        """
        Create a ticket and stamp its acknowledgment/resolution deadlines.

        Raises:
            InvalidPriorityError: priority is missing entirely
        """
        if priority is None or not str(priority).strip():
            raise InvalidPriorityError(details={"organization_id": organization_id})

        ticket = IncidentTicket.open(
            ticket_id=ticket_id or str(uuid4()),
            organization_id=organization_id,
            priority=str(priority).strip().lower(),
            created_at=created_at or utcnow(),
            rules=self._rules,
            title=title
        )
        ticket = await self._ticket_repo.create(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority,
                "sla_target_ack": ticket.sla_target_ack.isoformat(),
                "sla_target_resolve": ticket.sla_target_resolve.isoformat()
            }
        )
        await self._emit(ticket, None, ticket.created_at)
        return ticket

    async def on_acknowledge(self, ticket_id: str, at: Optional[datetime] = None) -> IncidentTicket:
        """Record first acknowledgment. Repeated calls keep the first timestamp."""
        return await self._record(ticket_id, Milestone.ACKNOWLEDGED, at)

    async def on_resolve(self, ticket_id: str, at: Optional[datetime] = None) -> IncidentTicket:
        """Record resolution. Requires a prior acknowledgment."""
        return await self._record(ticket_id, Milestone.RESOLVED, at)

    async def on_close(self, ticket_id: str, at: Optional[datetime] = None) -> IncidentTicket:
        """Record closure. Requires a prior resolution."""
        return await self._record(ticket_id, Milestone.CLOSED, at)

    async def get(self, ticket_id: str) -> IncidentTicket:
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    async def _record(
        self,
        ticket_id: str,
        milestone: str,
        at: Optional[datetime]
    ) -> IncidentTicket:
        ticket = await self.get(ticket_id)
        at = ensure_utc(at) or utcnow()
        previous_status = ticket.status

        transitions = {
            Milestone.ACKNOWLEDGED: ticket.acknowledge,
            Milestone.RESOLVED: ticket.resolve,
            Milestone.CLOSED: ticket.close,
        }
        if not transitions[milestone](at):
            logger.debug(
                "Milestone already recorded",
                extra={"ticket_id": ticket_id, "milestone": milestone}
            )
            return ticket

        if not await self._ticket_repo.set_milestone(ticket_id, milestone, at):
            # A concurrent writer got there first; its timestamp stands
            return await self.get(ticket_id)

        logger.info(
            "Milestone recorded",
            extra={"ticket_id": ticket_id, "milestone": milestone, "at": at.isoformat()}
        )
        await self._emit(ticket, previous_status, at)
        return ticket

    async def _emit(self, ticket: IncidentTicket, previous_status: Optional[str], at: datetime) -> None:
        event = TicketEvent(
            ticket_id=ticket.id,
            organization_id=ticket.organization_id,
            previous_status=previous_status,
            new_status=ticket.status,
            occurred_at=at,
        )
        try:
            await self._notifier.publish_event(event)
        except Exception as e:
            logger.error(
                "Failed to publish ticket event",
                extra={"ticket_id": ticket.id, "error": str(e)}
            )


class BreachScanner:
    """
    Flags each missed deadline exactly once.

    The store's conditional update on breach_flag is the only serialization
    point, so concurrent or back-to-back scans never double-report.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        notifier: INotifier,
        concurrency: Optional[int] = None
    ):
        self._ticket_repo = ticket_repository
        self._notifier = notifier
        self._concurrency = concurrency or settings.scan_concurrency

    async def run(self, now: Optional[datetime] = None) -> List[BreachRecord]:
        """
        Run one scan.

        Returns:
            BreachRecords created by this invocation only
        """
        now = ensure_utc(now) or utcnow()
        semaphore = asyncio.Semaphore(self._concurrency)
        records: List[BreachRecord] = []

        with log_latency(logger, "breach_scan"):
            # Ack clock first so a ticket missing both deadlines is flagged ack
            for sla_type, breach_type in (
                (SLAType.ACK, BreachType.ACK),
                (SLAType.RESOLVE, BreachType.RESOLVE),
            ):
                candidates = await self._ticket_repo.find_breach_candidates(sla_type, now)
                results = await asyncio.gather(*[
                    self._mark(ticket, sla_type, breach_type, now, semaphore)
                    for ticket in candidates
                ])
                records.extend(record for record in results if record is not None)

        if records:
            logger.warning(
                f"Found {len(records)} SLA breaches",
                extra={"breach_count": len(records)}
            )
            try:
                await self._notifier.notify_breaches(records)
            except Exception as e:
                logger.error("Failed to deliver breach notifications", extra={"error": str(e)})
        else:
            logger.info("No SLA breaches found")

        return records

    async def _mark(
        self,
        ticket: IncidentTicket,
        sla_type: str,
        breach_type: str,
        now: datetime,
        semaphore: asyncio.Semaphore
    ) -> Optional[BreachRecord]:
        async with semaphore:
            try:
                marked = await self._ticket_repo.conditional_set_breach_flag(ticket.id, breach_type, now)
            except Exception as e:
                # breach_flag is untouched, so the next cycle retries
                get_ticket_logger(__name__, ticket.id).error(
                    "Failed to mark SLA breach",
                    extra={"sla_type": sla_type, "error": str(e)}
                )
                return None

        if not marked:
            return None

        return BreachRecord(
            ticket_id=ticket.id,
            sla_type=sla_type,
            breached_at=now,
            duration_minutes_past_deadline=SLACalculator.minutes_past(ticket.deadline_for(sla_type), now)
        )


class NearBreachNotifier:
    """
    Surfaces tickets about to breach. Read-only against the store.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        notifier: INotifier,
        default_lookahead_minutes: Optional[int] = None
    ):
        self._ticket_repo = ticket_repository
        self._notifier = notifier
        self._default_lookahead = default_lookahead_minutes or settings.near_breach_lookahead_minutes

    async def run(
        self,
        lookahead_minutes: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> NearBreachReport:
        now = ensure_utc(now) or utcnow()
        lookahead = lookahead_minutes or self._default_lookahead
        until = now + timedelta(minutes=lookahead)

        warnings = {}
        for sla_type in (SLAType.ACK, SLAType.RESOLVE):
            tickets = await self._ticket_repo.find_near_breach(sla_type, now, until)
            warnings[sla_type] = [
                NearBreachWarning(
                    ticket_id=ticket.id,
                    organization_id=ticket.organization_id,
                    sla_type=sla_type,
                    deadline=ticket.deadline_for(sla_type),
                    minutes_remaining=round((ticket.deadline_for(sla_type) - now).total_seconds() / 60, 2)
                )
                for ticket in tickets
            ]

        report = NearBreachReport(
            checked_at=now,
            lookahead_minutes=lookahead,
            ack=warnings[SLAType.ACK],
            resolve=warnings[SLAType.RESOLVE],
        )

        logger.info(
            "Near-breach sweep complete",
            extra={
                "ack_near_breaches": report.ack_count,
                "resolve_near_breaches": report.resolve_count,
                "lookahead_minutes": lookahead
            }
        )

        if not report.is_empty:
            try:
                await self._notifier.notify_near_breaches(report)
            except Exception as e:
                logger.error("Failed to deliver near-breach notifications", extra={"error": str(e)})

        return report


class SLAReportService:
    """Read-side SLA views: per-ticket status and compliance rate."""

    def __init__(self, ticket_repository: ITicketRepository):
        self._ticket_repo = ticket_repository

    async def ticket_status(self, ticket_id: str, now: Optional[datetime] = None) -> dict:
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)

        now = ensure_utc(now) or utcnow()
        clocks = {}
        for sla_type in (SLAType.ACK, SLAType.RESOLVE):
            deadline = ticket.deadline_for(sla_type)
            met_at = getattr(ticket, SLA_TYPE_MILESTONES[sla_type])
            clocks[sla_type] = {
                "deadline": deadline,
                "state": ticket.sla_state(sla_type, now),
                "met_at": met_at,
                "time_remaining": "0s" if met_at else SLACalculator.format_time_remaining(deadline, now),
            }

        return {
            "ticket": ticket,
            "ack": clocks[SLAType.ACK],
            "resolve": clocks[SLAType.RESOLVE],
            "overall_state": ticket.overall_sla_state(now),
        }

    async def compliance(self, organization_id: Optional[str] = None) -> dict:
        """
        Share of tickets resolved within their resolution deadline.

        100 when there are no tickets.
        """
        tickets = await self._ticket_repo.list(organization_id)
        total = len(tickets)
        within = sum(1 for ticket in tickets if ticket.resolved_within_sla)
        percentage = 100 if total == 0 else round(within / total * 100)

        return {
            "organization_id": organization_id,
            "total_tickets": total,
            "resolved_within_sla": within,
            "breached_tickets": sum(1 for ticket in tickets if ticket.breach_flag is not None),
            "compliance_percentage": percentage,
        }
