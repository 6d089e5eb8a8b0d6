"""
Escalation Infrastructure Models
=================================

SQLAlchemy ORM models for the directory and the escalation log.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from incident_sla.config import EscalationStatus
from incident_sla.infrastructure.database import Base


class UserModel(Base):
    """Directory principal. Maps to the 'users' table."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


class EscalationModel(Base):
    """Escalation audit log. Maps to the 'escalated_incidents' table."""
    __tablename__ = "escalated_incidents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("incident_tickets.id"), nullable=False, index=True
    )
    escalated_to_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    escalated_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EscalationStatus.PENDING)
    escalated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
