"""
Core Exceptions
================

Custom exceptions for the incident SLA engine.

Each exception carries the HTTP status it should surface as, so the API
layer can map the whole taxonomy with a single handler.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    status_code = 400


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    status_code = 422


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class NotFoundError(ApplicationException):
    """A ticket or user reference does not exist."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ForbiddenError(DomainException):
    """Organizational-boundary violation."""

    status_code = 403


class InvalidTransitionError(DomainException):
    """A milestone was recorded out of the allowed order."""

    status_code = 409

    def __init__(
        self,
        ticket_id: str,
        milestone: str,
        reason: str,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.milestone = milestone
        super().__init__(
            f"Cannot record {milestone} on ticket {ticket_id}: {reason}",
            details or {"ticket_id": ticket_id, "milestone": milestone}
        )


class DuplicateTicketError(DomainException):
    """A ticket with the same id already exists."""

    status_code = 409

    def __init__(self, ticket_id: str, details: Optional[dict] = None):
        self.ticket_id = ticket_id
        super().__init__(
            f"Ticket {ticket_id} already exists",
            details or {"ticket_id": ticket_id}
        )


class InvalidPriorityError(ValidationException):
    """A ticket was created without any priority."""

    def __init__(self, message: str = "Ticket priority is required", details: Optional[dict] = None):
        super().__init__(message, details)
