"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from incident_sla.infrastructure.database import Base
from incident_sla.config import Priority


class TicketModel(Base):
    """
    Database model for IncidentTicket.

    Maps to the 'incident_tickets' table. Only the SLA-relevant columns
    live here; the rest of a ticket belongs to the surrounding system.
    """
    __tablename__ = "incident_tickets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    # Milestones (write-once)
    first_acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Deadlines (stamped at creation)
    sla_target_ack: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sla_target_resolve: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Breach flag (write-once): ack or resolve
    breach_flag: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    breached_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_incident_tickets_ack_sweep", "breach_flag", "first_acknowledged_at", "sla_target_ack"),
        Index("ix_incident_tickets_resolve_sweep", "breach_flag", "resolved_at", "sla_target_resolve"),
    )
