"""
SLA Tracking Service
====================

SLA status, escalation decisions and review queue ordering.

Statuses:
- ON_TRACK: less than 75% of the review window used
- AT_RISK: 75% or more of the window used, not yet due
- OVERDUE: past the due date

Two escalation checks exist. ``check_escalation`` computes the target
level directly from elapsed time and drives every persisted change.
``calculate_sla_status`` carries a one-step preview for display only.

Version: 0.1.0
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from shared.models.assessment import RiskLevel
from shared.models.review import Priority
from shared.models.submission import TERMINAL_STATUSES, SubmissionStatus
from services.risk_review.services.workflow import (
    DEFAULT_WORKFLOW_CONFIG,
    WorkflowConfig,
    ensure_utc,
)


AT_RISK_PERCENT = 75.0
HOUR = timedelta(hours=1)
TERMINAL_STATUS_VALUES = frozenset(status.value for status in TERMINAL_STATUSES)


class SLAStatus(str, Enum):
    """Review SLA status."""

    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    OVERDUE = "OVERDUE"


SLA_STATUS_WEIGHTS: dict[SLAStatus, int] = {
    SLAStatus.OVERDUE: 50,
    SLAStatus.AT_RISK: 25,
    SLAStatus.ON_TRACK: 0,
}

SLA_STATUS_LABELS: dict[SLAStatus, str] = {
    SLAStatus.ON_TRACK: "On Track",
    SLAStatus.AT_RISK: "At Risk",
    SLAStatus.OVERDUE: "Overdue",
}

MAX_OVERDUE_BONUS = 50


@dataclass(frozen=True)
class SLAInfo:
    """SLA snapshot for one submission at one instant."""

    status: SLAStatus
    due_date: datetime | None
    hours_remaining: float | None
    hours_overdue: float | None
    percent_complete: float
    should_escalate: bool
    escalation_level: int
    display_text: str

    @property
    def label(self) -> str:
        return SLA_STATUS_LABELS[self.status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "label": self.label,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "hours_remaining": self.hours_remaining,
            "hours_overdue": self.hours_overdue,
            "percent_complete": self.percent_complete,
            "should_escalate": self.should_escalate,
            "escalation_level": self.escalation_level,
            "display_text": self.display_text,
        }


NO_SLA = SLAInfo(
    status=SLAStatus.ON_TRACK,
    due_date=None,
    hours_remaining=None,
    hours_overdue=None,
    percent_complete=0.0,
    should_escalate=False,
    escalation_level=0,
    display_text="No SLA",
)


@dataclass(frozen=True)
class EscalationDecision:
    """Outcome of an escalation check."""

    should_escalate: bool
    new_level: int


@dataclass
class QueueEntry:
    """One open submission in the review queue."""

    submission_id: str
    ai_system_name: str | None
    status: SubmissionStatus
    submitted_at: datetime | None
    priority: Priority
    risk_level: RiskLevel | None
    sla: SLAInfo
    priority_score: float = 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_time_text(hours: float, suffix: str) -> str:
    """
    Compact duration text.

    Minutes under an hour, whole hours under a day, otherwise days
    with an hour remainder when it is non-zero.
    """
    if hours < 1:
        return f"{_round_half_up(hours * 60)}m {suffix}"
    if hours < 24:
        return f"{_round_half_up(hours)}h {suffix}"

    days = math.floor(hours / 24)
    remainder = _round_half_up(hours % 24)
    if remainder == 24:
        days, remainder = days + 1, 0
    if remainder == 0:
        return f"{days}d {suffix}"
    return f"{days}d {remainder}h {suffix}"


class SLACalculator:
    """SLA and escalation calculator bound to one workflow policy."""

    def __init__(self, config: WorkflowConfig | None = None) -> None:
        self.config = config or DEFAULT_WORKFLOW_CONFIG

    def calculate_sla_status(
        self,
        submitted_at: datetime | None,
        due_date: datetime | None,
        risk_level: str | RiskLevel | None,
        current_escalation_level: int = 0,
        now: datetime | None = None,
    ) -> SLAInfo:
        """
        SLA status for a submission.

        Args:
            submitted_at: When the submission entered review
            due_date: Review due date
            risk_level: Assessed risk level, MEDIUM when unknown
            current_escalation_level: Persisted escalation level
            now: Evaluation instant, defaults to the current time

        Returns:
            The neutral "No SLA" result when either timestamp is missing
        """
        if submitted_at is None or due_date is None:
            return NO_SLA

        submitted_at = ensure_utc(submitted_at)
        due_date = ensure_utc(due_date)
        now = ensure_utc(now or datetime.now(UTC))

        total = due_date - submitted_at
        elapsed = now - submitted_at
        remaining = due_date - now

        hours_remaining = remaining / HOUR
        if total <= timedelta(0):
            percent_complete = 100.0
        else:
            percent_complete = min(100.0, max(0.0, elapsed / total * 100))

        hours_overdue: float | None = None
        if remaining < timedelta(0):
            status = SLAStatus.OVERDUE
            hours_overdue = abs(hours_remaining)
            display_text = format_time_text(hours_overdue, "overdue")
        else:
            status = SLAStatus.AT_RISK if percent_complete >= AT_RISK_PERCENT else SLAStatus.ON_TRACK
            display_text = format_time_text(hours_remaining, "remaining")

        threshold = self.config.get_sla_config(risk_level).escalation_after_hours
        hours_since_submission = elapsed / HOUR
        should_escalate = (
            hours_since_submission >= threshold * (current_escalation_level + 1)
            and current_escalation_level < self.config.max_escalation_level
        )

        return SLAInfo(
            status=status,
            due_date=due_date,
            hours_remaining=None if status == SLAStatus.OVERDUE else hours_remaining,
            hours_overdue=hours_overdue,
            percent_complete=percent_complete,
            should_escalate=should_escalate,
            escalation_level=current_escalation_level,
            display_text=display_text,
        )

    def check_escalation(
        self,
        submitted_at: datetime,
        risk_level: str | RiskLevel | None,
        current_escalation_level: int,
        status: SubmissionStatus | str,
        now: datetime | None = None,
    ) -> EscalationDecision:
        """
        Target escalation level from elapsed time.

        May jump several tiers at once when checks have been infrequent.
        Never lowers the level, and never moves it once the submission
        is approved or rejected. Unrecognised statuses count as open.
        """
        unchanged = EscalationDecision(False, current_escalation_level)
        if getattr(status, "value", status) in TERMINAL_STATUS_VALUES:
            return unchanged

        now = ensure_utc(now or datetime.now(UTC))
        hours_since_submission = (now - ensure_utc(submitted_at)) / HOUR
        threshold = self.config.get_sla_config(risk_level).escalation_after_hours

        expected = math.floor(hours_since_submission / threshold)
        target = min(max(expected, 0), self.config.max_escalation_level)

        if target > current_escalation_level:
            return EscalationDecision(True, target)
        return unchanged

    def calculate_priority_score(
        self,
        priority: str | Priority | None,
        sla_status: SLAStatus,
        hours_overdue: float | None = None,
    ) -> float:
        """Queue sort key; higher sorts first."""
        score: float = self.config.get_priority_weight(priority) * 100
        score += SLA_STATUS_WEIGHTS[sla_status]
        if hours_overdue and hours_overdue > 0:
            score += min(MAX_OVERDUE_BONUS, hours_overdue)
        return score

    def build_queue_entry(
        self,
        submission_id: str,
        ai_system_name: str | None,
        status: SubmissionStatus,
        submitted_at: datetime | None,
        due_date: datetime | None,
        priority: Priority,
        risk_level: RiskLevel | None,
        escalation_level: int = 0,
        now: datetime | None = None,
    ) -> QueueEntry:
        """SLA snapshot plus priority score for one open submission."""
        sla = self.calculate_sla_status(
            submitted_at=submitted_at,
            due_date=due_date,
            risk_level=risk_level,
            current_escalation_level=escalation_level,
            now=now,
        )
        return QueueEntry(
            submission_id=submission_id,
            ai_system_name=ai_system_name,
            status=status,
            submitted_at=submitted_at,
            priority=priority,
            risk_level=risk_level,
            sla=sla,
            priority_score=self.calculate_priority_score(priority, sla.status, sla.hours_overdue),
        )


def sort_review_queue(entries: Iterable[QueueEntry]) -> list[QueueEntry]:
    """Highest priority score first, then oldest submission first."""
    far_future = datetime.max.replace(tzinfo=UTC)
    return sorted(
        entries,
        key=lambda entry: (
            -entry.priority_score,
            ensure_utc(entry.submitted_at) if entry.submitted_at else far_future,
        ),
    )


DEFAULT_SLA_CALCULATOR = SLACalculator()


def calculate_sla_status(
    submitted_at: datetime | None,
    due_date: datetime | None,
    risk_level: str | RiskLevel | None,
    current_escalation_level: int = 0,
    now: datetime | None = None,
) -> SLAInfo:
    return DEFAULT_SLA_CALCULATOR.calculate_sla_status(
        submitted_at, due_date, risk_level, current_escalation_level, now
    )


def check_escalation(
    submitted_at: datetime,
    risk_level: str | RiskLevel | None,
    current_escalation_level: int,
    status: SubmissionStatus | str,
    now: datetime | None = None,
) -> EscalationDecision:
    return DEFAULT_SLA_CALCULATOR.check_escalation(
        submitted_at, risk_level, current_escalation_level, status, now
    )


def calculate_priority_score(
    priority: str | Priority | None,
    sla_status: SLAStatus,
    hours_overdue: float | None = None,
) -> float:
    return DEFAULT_SLA_CALCULATOR.calculate_priority_score(priority, sla_status, hours_overdue)
