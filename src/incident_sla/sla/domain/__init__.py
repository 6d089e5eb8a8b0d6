"""
SLA Domain Layer
================

Domain layer for the incident SLA module.

Contains:
- Entities: IncidentTicket, TicketEvent
- Value Objects: SLARule, SLARuleTable, SLADeadlines, BreachRecord,
  NearBreachWarning, NearBreachReport, SLAConfig
- Domain Services: SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from incident_sla.sla.domain.entities import IncidentTicket, TicketEvent
from incident_sla.sla.domain.value_objects import (
    SLACalculator,
    SLAConfig,
    SLARuleConfig,
    SLARule,
    SLARuleTable,
    SLADeadlines,
    BreachRecord,
    NearBreachWarning,
    NearBreachReport,
    DEFAULT_SLA_RULES,
    ensure_utc,
    utcnow,
)

__all__ = [
    # Entities
    "IncidentTicket",
    "TicketEvent",
    # Value Objects & Services
    "SLACalculator",
    "SLAConfig",
    "SLARuleConfig",
    "SLARule",
    "SLARuleTable",
    "SLADeadlines",
    "BreachRecord",
    "NearBreachWarning",
    "NearBreachReport",
    "DEFAULT_SLA_RULES",
    "ensure_utc",
    "utcnow",
]
