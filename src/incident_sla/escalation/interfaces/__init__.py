"""
Escalation Interfaces Layer
===========================

FastAPI routes for the escalation module.
"""

from incident_sla.escalation.interfaces.controllers import escalation_router

__all__ = ["escalation_router"]
