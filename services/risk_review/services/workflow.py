"""
Workflow Configuration
======================

SLA targets, queue priorities and escalation tiers by risk level.

Risk Level SLA Targets:
- CRITICAL: 24h review, escalate after 12h, URGENT
- HIGH: 48h review, escalate after 24h, HIGH
- MEDIUM: 120h review, escalate after 72h, NORMAL
- LOW: 240h review, escalate after 168h, LOW

Version: 0.1.0
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import MappingProxyType

from shared.models.assessment import RiskLevel
from shared.models.review import Priority


@dataclass(frozen=True)
class SLAConfig:
    """SLA row for one risk level."""

    review_sla_hours: int
    escalation_after_hours: int
    priority: Priority


@dataclass(frozen=True)
class EscalationTier:
    """One step on the escalation ladder."""

    level: int
    action: str
    notify_roles: tuple[str, ...]


@dataclass(frozen=True)
class WorkflowConfig:
    """Read-only workflow policy."""

    sla_by_risk_level: Mapping[RiskLevel, SLAConfig] = field(
        default_factory=lambda: MappingProxyType(
            {
                RiskLevel.CRITICAL: SLAConfig(24, 12, Priority.URGENT),
                RiskLevel.HIGH: SLAConfig(48, 24, Priority.HIGH),
                RiskLevel.MEDIUM: SLAConfig(120, 72, Priority.NORMAL),
                RiskLevel.LOW: SLAConfig(240, 168, Priority.LOW),
            }
        )
    )

    # Higher is more urgent
    priority_weights: Mapping[Priority, int] = field(
        default_factory=lambda: MappingProxyType(
            {
                Priority.URGENT: 4,
                Priority.HIGH: 3,
                Priority.NORMAL: 2,
                Priority.LOW: 1,
            }
        )
    )
    default_priority_weight: int = 2

    escalation_levels: tuple[EscalationTier, ...] = (
        EscalationTier(1, "First escalation - notify reviewers", ("REVIEWER", "ADMIN")),
        EscalationTier(2, "Second escalation - notify admins", ("ADMIN",)),
        EscalationTier(3, "Final escalation - critical alert", ("ADMIN",)),
    )

    @property
    def max_escalation_level(self) -> int:
        """Ceiling on automatic escalations."""
        return len(self.escalation_levels)

    def get_sla_config(self, risk_level: str | RiskLevel | None) -> SLAConfig:
        """SLA row for a risk level; unknown or missing levels get the MEDIUM row."""
        return self.sla_by_risk_level.get(
            _parse_risk_level(risk_level),
            self.sla_by_risk_level[RiskLevel.MEDIUM],
        )

    def calculate_due_date(
        self,
        risk_level: str | RiskLevel | None,
        from_date: datetime | None = None,
    ) -> datetime:
        """
        Review due date for a risk level.

        Absolute-time addition on aware datetimes, so DST transitions
        never shift the result. Naive inputs are taken as UTC.
        """
        start = ensure_utc(from_date or datetime.now(UTC))
        return start + timedelta(hours=self.get_sla_config(risk_level).review_sla_hours)

    def get_priority_for_risk_level(self, risk_level: str | RiskLevel | None) -> Priority:
        """Default queue priority for a risk level."""
        return self.get_sla_config(risk_level).priority

    def get_priority_weight(self, priority: str | Priority | None) -> int:
        """Sort weight for a priority; unknown priorities weigh as NORMAL."""
        try:
            return self.priority_weights.get(Priority(priority), self.default_priority_weight)
        except ValueError:
            return self.default_priority_weight

    def get_escalation_tier(self, level: int) -> EscalationTier | None:
        """Tier definition for an escalation level, if one exists."""
        for tier in self.escalation_levels:
            if tier.level == level:
                return tier
        return None


DEFAULT_WORKFLOW_CONFIG = WorkflowConfig()

PRIORITY_LABELS: Mapping[str, str] = MappingProxyType(
    {
        Priority.LOW.value: "Low",
        Priority.NORMAL.value: "Normal",
        Priority.HIGH.value: "High",
        Priority.URGENT.value: "Urgent",
    }
)


def _parse_risk_level(risk_level: str | RiskLevel | None) -> RiskLevel | None:
    if risk_level is None:
        return None
    if isinstance(risk_level, RiskLevel):
        return risk_level
    try:
        return RiskLevel(risk_level.strip().upper())
    except ValueError:
        return None


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def get_sla_config(risk_level: str | RiskLevel | None) -> SLAConfig:
    return DEFAULT_WORKFLOW_CONFIG.get_sla_config(risk_level)


def calculate_due_date(
    risk_level: str | RiskLevel | None,
    from_date: datetime | None = None,
) -> datetime:
    return DEFAULT_WORKFLOW_CONFIG.calculate_due_date(risk_level, from_date)


def get_priority_for_risk_level(risk_level: str | RiskLevel | None) -> Priority:
    return DEFAULT_WORKFLOW_CONFIG.get_priority_for_risk_level(risk_level)


def get_priority_weight(priority: str | Priority | None) -> int:
    return DEFAULT_WORKFLOW_CONFIG.get_priority_weight(priority)


def get_priority_label(priority: str | Priority) -> str:
    """Display label; unknown priorities are shown as-is."""
    key = priority.value if isinstance(priority, Priority) else priority
    return PRIORITY_LABELS.get(key, key)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_sla_duration(hours: int) -> str:
    """
    Human-readable SLA window.

    Examples:
        12 -> "12 hours", 24 -> "1 day", 30 -> "1 day 6 hours"
    """
    if hours < 24:
        return _plural(hours, "hour")
    days, remainder = divmod(hours, 24)
    if remainder == 0:
        return _plural(days, "day")
    return f"{_plural(days, 'day')} {_plural(remainder, 'hour')}"
