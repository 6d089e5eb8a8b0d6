"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Models: SQLAlchemy ORM models
- Repositories: Ticket store and YAML rule loader
- External: Notifiers and the sweep scheduler
"""

from incident_sla.sla.infrastructure.models import TicketModel
from incident_sla.sla.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    YAMLConfigProvider
)
from incident_sla.sla.infrastructure.external import (
    LoggingNotifier,
    SlackNotifier,
    SLAScheduler,
    build_notifier
)

__all__ = [
    "TicketModel",
    "SQLAlchemyTicketRepository",
    "YAMLConfigProvider",
    "LoggingNotifier",
    "SlackNotifier",
    "SLAScheduler",
    "build_notifier",
]
