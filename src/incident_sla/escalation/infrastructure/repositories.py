"""
Escalation Infrastructure Repositories
========================================

SQLAlchemy implementations of the directory and escalation store.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incident_sla.core import RepositoryException
from incident_sla.escalation.application import IEscalationRepository, IUserDirectory
from incident_sla.escalation.domain import EscalationRecord, User
from incident_sla.escalation.infrastructure.models import EscalationModel, UserModel
from incident_sla.infrastructure.database import get_session_context
from incident_sla.sla.domain import ensure_utc


def _user_to_domain(model: UserModel) -> User:
    return User(
        id=model.id,
        email=model.email,
        role=model.role,
        organization_id=model.organization_id,
    )


def _record_to_domain(model: EscalationModel) -> EscalationRecord:
    return EscalationRecord(
        id=model.id,
        ticket_id=model.ticket_id,
        escalated_to_user_id=model.escalated_to_user_id,
        escalated_by_user_id=model.escalated_by_user_id,
        reason=model.reason,
        status=model.status,
        escalated_at=model.escalated_at,
    )


class SQLAlchemyUserDirectory(IUserDirectory):
    """Directory backed by the users table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_by_email(self, email: str) -> Optional[User]:
        async with get_session_context(self._session_maker) as session:
            result = await session.execute(
                select(UserModel).where(UserModel.email == email.strip().lower())
            )
            model = result.scalar_one_or_none()
            return _user_to_domain(model) if model else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with get_session_context(self._session_maker) as session:
            model = await session.get(UserModel, user_id)
            return _user_to_domain(model) if model else None

    async def add(self, user: User) -> User:
        """Register a principal. Emails are stored lowercased."""
        async with get_session_context(self._session_maker) as session:
            session.add(UserModel(
                id=user.id,
                email=user.email.strip().lower(),
                role=user.role,
                organization_id=user.organization_id,
            ))
        return user


class SQLAlchemyEscalationRepository(IEscalationRepository):
    """Append-only escalation log."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create(self, record: EscalationRecord) -> EscalationRecord:
        try:
            async with get_session_context(self._session_maker) as session:
                session.add(EscalationModel(
                    id=record.id,
                    ticket_id=record.ticket_id,
                    escalated_to_user_id=record.escalated_to_user_id,
                    escalated_by_user_id=record.escalated_by_user_id,
                    reason=record.reason,
                    status=record.status,
                    escalated_at=ensure_utc(record.escalated_at),
                ))
        except Exception as e:
            raise RepositoryException(f"Failed to record escalation for ticket {record.ticket_id}: {e}") from e
        return record

    async def list_for_ticket(self, ticket_id: str) -> List[EscalationRecord]:
        async with get_session_context(self._session_maker) as session:
            result = await session.execute(
                select(EscalationModel)
                .where(EscalationModel.ticket_id == ticket_id)
                .order_by(EscalationModel.escalated_at.asc())
            )
            return [_record_to_domain(model) for model in result.scalars().all()]
