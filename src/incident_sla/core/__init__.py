"""
Core Module
============

Shared core utilities and abstractions used across the application.

Holds the error taxonomy shared by the SLA and escalation contexts.
"""

from incident_sla.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ConfigurationException,
    NotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    DuplicateTicketError,
    InvalidPriorityError,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ConfigurationException",
    "NotFoundError",
    "ForbiddenError",
    "InvalidTransitionError",
    "DuplicateTicketError",
    "InvalidPriorityError",
]
