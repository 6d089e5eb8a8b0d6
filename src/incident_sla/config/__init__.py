"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="incident-sla", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/incident_sla",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA rule table YAML file"
    )
    breach_scan_interval: int = Field(
        default=60,
        description="Seconds between breach scans",
        ge=1
    )
    near_breach_scan_interval: int = Field(
        default=60,
        description="Seconds between near-breach sweeps",
        ge=1
    )
    near_breach_lookahead_minutes: int = Field(
        default=5,
        description="Minutes ahead of a deadline that count as near-breach",
        ge=1
    )
    scan_concurrency: int = Field(
        default=10,
        description="Max tickets marked concurrently during a breach scan",
        ge=1
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the breach and near-breach sweeps on a timer"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for breach notifications"
    )
    slack_channel: str = Field(
        default="#incident-sla",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str):
    """Incident priority tiers, most urgent first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"


class SLAType(str):
    """The two SLA clocks tracked per ticket."""
    ACK = "ack"
    RESOLVE = "resolve"


class BreachType(str):
    """Terminal values of a ticket's breach flag."""
    ACK = "ack"
    RESOLVE = "resolve"


class Milestone(str):
    """Write-once milestone timestamps on a ticket."""
    ACKNOWLEDGED = "first_acknowledged_at"
    RESOLVED = "resolved_at"
    CLOSED = "closed_at"


class TicketStatus(str):
    """Ticket status derived from recorded milestones."""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SLAState(str):
    """Per-clock SLA outcome."""
    PENDING = "pending"
    MET = "met"
    BREACHED = "breached"


class EscalationStatus(str):
    """Escalation record lifecycle."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class EventType(str):
    """Domain events emitted by the ticket state tracker."""
    STATUS_CHANGED = "status_changed"


# ========== Lists for validation ==========

PRIORITY_ORDER = [
    Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM,
    Priority.LOW, Priority.INFORMATIONAL
]
VALID_PRIORITIES = list(PRIORITY_ORDER)
VALID_SLA_TYPES = [SLAType.ACK, SLAType.RESOLVE]
VALID_BREACH_TYPES = [BreachType.ACK, BreachType.RESOLVE]
VALID_MILESTONES = [Milestone.ACKNOWLEDGED, Milestone.RESOLVED, Milestone.CLOSED]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.ACKNOWLEDGED,
    TicketStatus.RESOLVED, TicketStatus.CLOSED
]
VALID_SLA_STATES = [SLAState.PENDING, SLAState.MET, SLAState.BREACHED]
VALID_ESCALATION_STATUSES = [
    EscalationStatus.PENDING, EscalationStatus.ACCEPTED, EscalationStatus.REJECTED
]

# The clock each milestone satisfies
SLA_TYPE_MILESTONES = {
    SLAType.ACK: Milestone.ACKNOWLEDGED,
    SLAType.RESOLVE: Milestone.RESOLVED,
}
