"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from incident_sla.config import Priority, SLAType, PRIORITY_ORDER, VALID_PRIORITIES
from incident_sla.core import ConfigurationException
from incident_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to UTC-aware (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SLARule:
    """Acknowledgment and resolution windows for one priority tier."""
    priority: str
    acknowledgment_minutes: int
    resolution_minutes: int

    def __post_init__(self):
        if self.acknowledgment_minutes <= 0 or self.resolution_minutes <= 0:
            raise ConfigurationException(
                f"SLA windows for '{self.priority}' must be positive",
                {"priority": self.priority}
            )
        if self.resolution_minutes < self.acknowledgment_minutes:
            raise ConfigurationException(
                f"Resolution window for '{self.priority}' is shorter than its acknowledgment window",
                {"priority": self.priority}
            )


DEFAULT_SLA_RULES: Dict[str, SLARule] = {
    Priority.CRITICAL: SLARule(Priority.CRITICAL, 15, 240),
    Priority.HIGH: SLARule(Priority.HIGH, 30, 480),
    Priority.MEDIUM: SLARule(Priority.MEDIUM, 60, 1440),
    Priority.LOW: SLARule(Priority.LOW, 120, 2880),
    Priority.INFORMATIONAL: SLARule(Priority.INFORMATIONAL, 240, 5760),
}


class SLARuleTable:
    """
    Static mapping from priority tier to its SLA rule.

    Built once at startup; lookups never mutate it.
    """

    def __init__(self, rules: Optional[Dict[str, SLARule]] = None):
        self._rules = dict(rules or DEFAULT_SLA_RULES)
        if not self._rules:
            raise ConfigurationException("SLA rule table cannot be empty")

    @property
    def least_urgent(self) -> SLARule:
        """Rule of the lowest-severity tier present in the table."""
        for priority in reversed(PRIORITY_ORDER):
            if priority in self._rules:
                return self._rules[priority]
        # Only custom tiers configured: most lenient resolution window wins
        return max(self._rules.values(), key=lambda r: (r.resolution_minutes, r.acknowledgment_minutes))

    def get(self, priority: str) -> Optional[SLARule]:
        return self._rules.get(str(priority).lower())

    def resolve(self, priority: str) -> SLARule:
        """
        Rule for a priority, failing open.

        An unrecognized priority gets the least-urgent rule and a warning.
        """
        rule = self.get(priority)
        if rule is None:
            fallback = self.least_urgent
            logger.warning(
                f"Unrecognized priority '{priority}', defaulting to '{fallback.priority}'",
                extra={"priority": str(priority), "fallback_priority": fallback.priority}
            )
            return fallback
        return rule

    def __iter__(self):
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)


@dataclass(frozen=True)
class SLADeadlines:
    """Absolute deadlines stamped on a ticket at creation."""
    ack_by: datetime
    resolve_by: datetime


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class; all deadline arithmetic lives here.
    """

    _default_table: Optional[SLARuleTable] = None

    @classmethod
    def default_table(cls) -> SLARuleTable:
        if cls._default_table is None:
            cls._default_table = SLARuleTable()
        return cls._default_table

    @staticmethod
    def compute_deadlines(
        created_at: datetime,
        priority: str,
        rules: Optional[SLARuleTable] = None
    ) -> SLADeadlines:
        """
        Compute acknowledgment and resolution deadlines.

        Args:
            created_at: When the ticket was created
            priority: Ticket priority (unrecognized values fail open)
            rules: Rule table, defaults to the built-in table

        Returns:
            SLADeadlines in the same time zone as created_at
        """
        rule = (rules or SLACalculator.default_table()).resolve(priority)
        return SLADeadlines(
            ack_by=created_at + timedelta(minutes=rule.acknowledgment_minutes),
            resolve_by=created_at + timedelta(minutes=rule.resolution_minutes),
        )

    @staticmethod
    def minutes_past(deadline: datetime, now: datetime) -> int:
        """Whole minutes elapsed since a deadline, halves rounded up."""
        return math.floor((now - deadline).total_seconds() / 60 + 0.5)

    @staticmethod
    def format_time_remaining(deadline: datetime, now: datetime) -> str:
        """Human readable time until a deadline ("1d 2h", "3h 5m", "12m", "0s")."""
        seconds = int((deadline - now).total_seconds())
        if seconds <= 0:
            return "0s"

        days, seconds = divmod(seconds, 86400)
        hours, seconds = divmod(seconds, 3600)
        minutes = seconds // 60

        if days > 0:
            return f"{days}d {hours}h"
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"


@dataclass(frozen=True)
class BreachRecord:
    """A breach newly flagged by one scan. Reported, never persisted here."""
    ticket_id: str
    sla_type: str
    breached_at: datetime
    duration_minutes_past_deadline: int

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "sla_type": self.sla_type,
            "breached_at": self.breached_at.isoformat(),
            "duration_minutes_past_deadline": self.duration_minutes_past_deadline,
        }


@dataclass(frozen=True)
class NearBreachWarning:
    """A ticket whose deadline falls inside the lookahead window."""
    ticket_id: str
    organization_id: str
    sla_type: str
    deadline: datetime
    minutes_remaining: float


@dataclass(frozen=True)
class NearBreachReport:
    """Result of one near-breach sweep."""
    checked_at: datetime
    lookahead_minutes: int
    ack: List[NearBreachWarning] = field(default_factory=list)
    resolve: List[NearBreachWarning] = field(default_factory=list)

    @property
    def ack_count(self) -> int:
        return len(self.ack)

    @property
    def resolve_count(self) -> int:
        return len(self.resolve)

    @property
    def is_empty(self) -> bool:
        return not self.ack and not self.resolve

    def warnings_for(self, sla_type: str) -> List[NearBreachWarning]:
        return self.ack if sla_type == SLAType.ACK else self.resolve


class SLARuleConfig(BaseModel):
    """Acknowledgment/resolution windows for one tier as written in YAML."""
    acknowledgment: int = Field(gt=0, description="Minutes to first acknowledgment")
    resolution: int = Field(gt=0, description="Minutes to resolution")

    @model_validator(mode="after")
    def check_order(self) -> "SLARuleConfig":
        if self.resolution < self.acknowledgment:
            raise ValueError("resolution must not be shorter than acknowledgment")
        return self


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    Tiers missing from the file keep their built-in windows.
    """
    sla_rules: Dict[str, SLARuleConfig] = Field(
        default_factory=dict,
        description="SLA windows in minutes by priority"
    )

    @field_validator("sla_rules")
    @classmethod
    def validate_sla_rules(cls, v: Dict[str, SLARuleConfig]) -> Dict[str, SLARuleConfig]:
        """Lower-case tier names and fill in the built-in tiers."""
        normalised = {str(k).lower(): rule for k, rule in v.items()}
        for priority in VALID_PRIORITIES:
            if priority not in normalised:
                default = DEFAULT_SLA_RULES[priority]
                normalised[priority] = SLARuleConfig(
                    acknowledgment=default.acknowledgment_minutes,
                    resolution=default.resolution_minutes
                )
        return normalised

    def to_rule_table(self) -> SLARuleTable:
        return SLARuleTable({
            priority: SLARule(priority, rule.acknowledgment, rule.resolution)
            for priority, rule in self.sla_rules.items()
        })
