"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

The ticket repository opens one short session per operation from a session
factory, so a breach scan can run its per-ticket compare-and-set calls
concurrently without sharing a session.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incident_sla.config import (
    BreachType, SLAType, SLA_TYPE_MILESTONES, VALID_BREACH_TYPES, VALID_MILESTONES
)
from incident_sla.core import ConfigurationException, DuplicateTicketError, RepositoryException
from incident_sla.infrastructure.database import get_session_context
from incident_sla.sla.application import ITicketRepository, ISLAConfigProvider
from incident_sla.sla.domain import IncidentTicket, SLAConfig, SLARuleTable, ensure_utc
from incident_sla.sla.infrastructure.models import TicketModel
from incident_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _to_domain(model: TicketModel) -> IncidentTicket:
    return IncidentTicket(
        id=model.id,
        organization_id=model.organization_id,
        priority=model.priority,
        created_at=model.created_at,
        sla_target_ack=model.sla_target_ack,
        sla_target_resolve=model.sla_target_resolve,
        first_acknowledged_at=model.first_acknowledged_at,
        resolved_at=model.resolved_at,
        closed_at=model.closed_at,
        breach_flag=model.breach_flag,
        breached_at=model.breached_at,
        title=model.title,
    )


def _deadline_column(sla_type: str):
    return TicketModel.sla_target_ack if sla_type == SLAType.ACK else TicketModel.sla_target_resolve


def _milestone_column(sla_type: str):
    return getattr(TicketModel, SLA_TYPE_MILESTONES[sla_type])


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of the ticket store.

    Milestone writes and breach marking are single conditional UPDATE
    statements; the affected row count says whether this caller won.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_by_id(self, ticket_id: str) -> Optional[IncidentTicket]:
        async with get_session_context(self._session_maker) as session:
            model = await session.get(TicketModel, ticket_id)
            return _to_domain(model) if model else None

    async def create(self, ticket: IncidentTicket) -> IncidentTicket:
        model = TicketModel(
            id=ticket.id,
            organization_id=ticket.organization_id,
            priority=ticket.priority,
            title=ticket.title,
            created_at=ensure_utc(ticket.created_at),
            sla_target_ack=ensure_utc(ticket.sla_target_ack),
            sla_target_resolve=ensure_utc(ticket.sla_target_resolve),
        )
        try:
            async with get_session_context(self._session_maker) as session:
                session.add(model)
        except IntegrityError as e:
            raise DuplicateTicketError(ticket.id) from e
        except Exception as e:
            raise RepositoryException(f"Failed to create ticket {ticket.id}: {e}") from e
        return ticket

    async def set_milestone(self, ticket_id: str, milestone: str, at: datetime) -> bool:
        if milestone not in VALID_MILESTONES:
            raise RepositoryException(f"Unknown milestone: {milestone}")

        column = getattr(TicketModel, milestone)
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id, column.is_(None))
            .values({milestone: ensure_utc(at)})
            .execution_options(synchronize_session=False)
        )
        async with get_session_context(self._session_maker) as session:
            result = await session.execute(stmt)
            return result.rowcount == 1

    async def find_breach_candidates(self, sla_type: str, now: datetime) -> List[IncidentTicket]:
        stmt = select(TicketModel).where(
            _deadline_column(sla_type) < ensure_utc(now),
            _milestone_column(sla_type).is_(None),
            TicketModel.breach_flag.is_(None),
        )
        return await self._fetch(stmt)

    async def find_near_breach(
        self,
        sla_type: str,
        now: datetime,
        until: datetime
    ) -> List[IncidentTicket]:
        deadline = _deadline_column(sla_type)
        stmt = select(TicketModel).where(
            deadline > ensure_utc(now),
            deadline <= ensure_utc(until),
            _milestone_column(sla_type).is_(None),
            TicketModel.breach_flag.is_(None),
        ).order_by(deadline.asc())
        return await self._fetch(stmt)

    async def conditional_set_breach_flag(
        self,
        ticket_id: str,
        breach_type: str,
        breached_at: datetime
    ) -> bool:
        if breach_type not in VALID_BREACH_TYPES:
            raise RepositoryException(f"Unknown breach type: {breach_type}")

        sla_type = SLAType.ACK if breach_type == BreachType.ACK else SLAType.RESOLVE
        stmt = (
            update(TicketModel)
            .where(
                TicketModel.id == ticket_id,
                TicketModel.breach_flag.is_(None),
                _milestone_column(sla_type).is_(None),
            )
            .values(breach_flag=breach_type, breached_at=ensure_utc(breached_at))
            .execution_options(synchronize_session=False)
        )
        async with get_session_context(self._session_maker) as session:
            result = await session.execute(stmt)
            return result.rowcount == 1

    async def list(self, organization_id: Optional[str] = None) -> List[IncidentTicket]:
        stmt = select(TicketModel)
        if organization_id:
            stmt = stmt.where(TicketModel.organization_id == organization_id)
        stmt = stmt.order_by(TicketModel.created_at.desc())
        return await self._fetch(stmt)

    async def _fetch(self, stmt) -> List[IncidentTicket]:
        async with get_session_context(self._session_maker) as session:
            result = await session.execute(stmt)
            return [_to_domain(model) for model in result.scalars().all()]


class YAMLConfigProvider(ISLAConfigProvider):
    """
    SLA rule table loaded once from YAML.

    A missing file means the built-in table. A malformed one is a startup
    error rather than a silent fallback.
    """

    def __init__(self, config_path: Path | str):
        self._config_path = Path(config_path)
        self._config = self._load_config()
        self._rule_table = self._config.to_rule_table()

    def _load_config(self) -> SLAConfig:
        if not self._config_path.exists():
            logger.warning(f"SLA config file not found: {self._config_path}, using defaults")
            return SLAConfig()

        with open(self._config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        try:
            config = SLAConfig(sla_rules=data.get("sla_rules", {}))
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid SLA config in {self._config_path}",
                {"errors": e.errors()}
            ) from e

        logger.info(
            "SLA configuration loaded",
            extra={"path": str(self._config_path), "tiers": sorted(config.sla_rules)}
        )
        return config

    @property
    def config(self) -> SLAConfig:
        return self._config

    def get_rule_table(self) -> SLARuleTable:
        return self._rule_table
