"""
Review Workflow Service
=======================

Submission lifecycle and reviewer workflow.

Workflow:
1. DRAFT: submitter edits the intake form
2. SUBMITTED: validated, scored and narrated
3. UNDER_REVIEW: a reviewer has picked it up
4. APPROVED / REJECTED: terminal
   Request-changes sends SUBMITTED or UNDER_REVIEW back to DRAFT.

Review records (priority, due date, escalation level) are created
lazily on the first reviewer or escalation touch.

Version: 0.1.0
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import EmailStr, TypeAdapter, ValidationError

from shared.logging import get_logger
from shared.models import (
    OPEN_STATUSES,
    AuditAction,
    AuditLogEntry,
    CommentCreate,
    Priority,
    ReviewAction,
    ReviewActionType,
    ReviewComment,
    RiskAssessment,
    RiskLevel,
    Submission,
    SubmissionCreate,
    SubmissionReview,
    SubmissionStatus,
    SubmissionUpdate,
)
from services.risk_review.errors import (
    InvalidTransitionError,
    SubmissionNotFoundError,
    SubmissionValidationError,
)
from services.risk_review.services.assessment import (
    RiskAssessmentResult,
    RiskAssessmentService,
)
from services.risk_review.services.audit import AuditService
from services.risk_review.services.notifications import NotificationService
from services.risk_review.services.sla import (
    QueueEntry,
    SLACalculator,
    SLAInfo,
    sort_review_queue,
)
from services.risk_review.services.workflow import WorkflowConfig
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)

SYSTEM_ACTOR = "system"

_email_adapter = TypeAdapter(EmailStr)


class WorkflowAction(str, Enum):
    """Actions that move a submission between statuses."""

    SUBMIT = "submit"
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"


@dataclass
class SubmissionWorkflow:
    """Submission status state machine."""

    transitions: dict[SubmissionStatus, dict[WorkflowAction, SubmissionStatus]] = field(
        default_factory=lambda: {
            SubmissionStatus.DRAFT: {
                WorkflowAction.SUBMIT: SubmissionStatus.SUBMITTED,
            },
            SubmissionStatus.SUBMITTED: {
                WorkflowAction.START_REVIEW: SubmissionStatus.UNDER_REVIEW,
                WorkflowAction.APPROVE: SubmissionStatus.APPROVED,
                WorkflowAction.REJECT: SubmissionStatus.REJECTED,
                WorkflowAction.REQUEST_CHANGES: SubmissionStatus.DRAFT,
            },
            SubmissionStatus.UNDER_REVIEW: {
                WorkflowAction.APPROVE: SubmissionStatus.APPROVED,
                WorkflowAction.REJECT: SubmissionStatus.REJECTED,
                WorkflowAction.REQUEST_CHANGES: SubmissionStatus.DRAFT,
            },
        }
    )

    def can_transition(self, current: SubmissionStatus, action: WorkflowAction) -> bool:
        """Check if transition is valid."""
        return action in self.transitions.get(current, {})

    def get_next_status(self, current: SubmissionStatus, action: WorkflowAction) -> SubmissionStatus:
        """
        Status after an action.

        Raises:
            InvalidTransitionError: The action is not allowed from ``current``
        """
        if not self.can_transition(current, action):
            raise InvalidTransitionError(current.value, action.value.replace("_", " "))
        return self.transitions[current][action]


# Decision action -> (review action, audit action)
DECISION_ACTIONS: dict[WorkflowAction, tuple[ReviewActionType, AuditAction]] = {
    WorkflowAction.START_REVIEW: (ReviewActionType.REVIEW_STARTED, AuditAction.REVIEW_STARTED),
    WorkflowAction.APPROVE: (ReviewActionType.APPROVED, AuditAction.APPROVED),
    WorkflowAction.REJECT: (ReviewActionType.REJECTED, AuditAction.REJECTED),
    WorkflowAction.REQUEST_CHANGES: (ReviewActionType.CHANGES_REQUESTED, AuditAction.CHANGES_REQUESTED),
}

REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("ai_system_name", "AI System Name is required"),
    ("use_case", "Use case is required"),
    ("vendor", "Vendor is required"),
    ("current_stage", "Current stage is required"),
    ("output_usage", "Output usage is required"),
    ("human_review_level", "Human review level is required"),
    ("executive_sponsor_name", "Executive sponsor name is required"),
)

EMAIL_FIELDS: tuple[str, ...] = ("business_owner_email", "technical_owner_email")


# =============================================================================
# Results
# =============================================================================


@dataclass
class SubmitResult:
    """
    Outcome of submitting a draft.

    ``assessment_status`` is "completed", "fallback" (stored with the
    deterministic narrative) or "failed" (submission is SUBMITTED but no
    assessment was stored; retry with ``retry_assessment``).
    """

    submission: Submission
    assessment: RiskAssessment | None = None
    assessment_status: str = "completed"
    error: str | None = None


@dataclass
class DecisionResult:
    """Outcome of a reviewer decision."""

    submission: Submission
    action: ReviewAction
    previous_status: SubmissionStatus


@dataclass
class EscalationResult:
    """Outcome of an escalation attempt."""

    escalated: bool
    previous_level: int
    new_level: int
    escalated_at: datetime | None = None
    message: str | None = None
    notify_roles: list[str] = field(default_factory=list)


@dataclass
class EscalationStatus:
    """Escalation state without side effects."""

    escalation_level: int
    escalated_at: datetime | None
    needs_escalation: bool
    next_level: int | None
    priority: Priority | None
    due_date: datetime | None


# =============================================================================
# Service
# =============================================================================


class ReviewService:
    """
    Submission and review workflow service.

    Example:
        >>> service = ReviewService(RiskAssessmentService())
        >>> result = await service.submit(store, submission_id, user_id)
        >>> result.submission.status
        <SubmissionStatus.SUBMITTED: 'SUBMITTED'>
    """

    def __init__(
        self,
        assessment_service: RiskAssessmentService | None = None,
        calculator: SLACalculator | None = None,
        audit: AuditService | None = None,
        notifications: NotificationService | None = None,
        workflow: SubmissionWorkflow | None = None,
    ) -> None:
        self.audit = audit or AuditService()
        self.assessment_service = assessment_service or RiskAssessmentService(audit=self.audit)
        self.calculator = calculator or SLACalculator()
        self.notifications = notifications or NotificationService()
        self.workflow = workflow or SubmissionWorkflow()

    @property
    def config(self) -> WorkflowConfig:
        return self.calculator.config

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def get_submission(self, store: SubmissionStore, submission_id: str) -> Submission:
        submission = await store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def _get_owned(self, store: SubmissionStore, submission_id: str, user_id: str) -> Submission:
        """Submission owned by ``user_id``; other users see it as missing."""
        submission = await self.get_submission(store, submission_id)
        if submission.submitted_by_id != user_id:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def create_submission(
        self,
        store: SubmissionStore,
        user_id: str,
        data: SubmissionCreate,
    ) -> Submission:
        """Create a draft owned by ``user_id``."""
        submission = await store.create_submission(user_id, data)
        await self.audit.log_created(store, submission.id, user_id)
        logger.info("submission_created", submission_id=submission.id, user_id=user_id)
        return submission

    async def update_submission(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        data: SubmissionUpdate,
    ) -> Submission:
        """
        Apply draft edits. Only fields present in the request change.

        Raises:
            InvalidTransitionError: Submission is no longer a draft
        """
        submission = await self._get_owned(store, submission_id, user_id)
        if submission.status != SubmissionStatus.DRAFT:
            raise InvalidTransitionError(submission.status.value, "edit")

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return submission

        previous = submission.model_dump(include=set(changes))
        updated = await store.update_submission(submission_id, changes)
        await self.audit.log_form_update(store, submission_id, user_id, previous, changes)
        return updated

    def validate_for_submit(self, submission: Submission) -> None:
        """
        Check a draft is complete enough to submit.

        Raises:
            SubmissionValidationError: With one issue per failing field
        """
        issues: list[dict[str, Any]] = []

        for name, message in REQUIRED_FIELDS:
            value = getattr(submission, name)
            if value is None or not str(value).strip():
                issues.append({"field": name, "message": message})

        if not submission.data_types:
            issues.append({"field": "data_types", "message": "Select at least one data type"})

        for name in EMAIL_FIELDS:
            value = getattr(submission, name)
            if not value:
                continue
            try:
                _email_adapter.validate_python(value)
            except ValidationError:
                issues.append({"field": name, "message": "Invalid email address"})

        if issues:
            raise SubmissionValidationError(issues, "Missing required fields")

    async def submit(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        now: datetime | None = None,
    ) -> SubmitResult:
        """
        Submit a draft for review and run its risk assessment.

        The submission is SUBMITTED before the assessment starts. If the
        assessment cannot be stored the result reports it instead of
        undoing the submission.

        Raises:
            InvalidTransitionError: Submission is not a draft
            SubmissionValidationError: Required fields missing
        """
        submission = await self._get_owned(store, submission_id, user_id)
        new_status = self.workflow.get_next_status(submission.status, WorkflowAction.SUBMIT)
        self.validate_for_submit(submission)

        submitted_at = now or datetime.now(UTC)
        submission = await store.set_status(
            submission_id,
            new_status,
            submitted_at=submitted_at,
            expected_status=submission.status,
        )
        await self.audit.log_submitted(
            store,
            submission_id,
            user_id,
            previous_status=SubmissionStatus.DRAFT,
            system_name=submission.ai_system_name,
        )
        await self.notifications.submission_received(
            submission_id, submission.submitted_by_id, submission.ai_system_name
        )
        logger.info("submission_submitted", submission_id=submission_id)

        try:
            result = await self.assessment_service.run_risk_assessment(store, submission, user_id)
        except Exception as e:
            logger.error("risk_assessment_failed", submission_id=submission_id, error=str(e))
            return SubmitResult(
                submission=submission,
                assessment_status="failed",
                error="Risk assessment could not be saved. Retry the assessment.",
            )

        await self._reschedule_review(store, submission, result.assessment.overall_level)
        return SubmitResult(
            submission=submission,
            assessment=result.assessment,
            assessment_status="fallback" if result.fallback else "completed",
        )

    async def retry_assessment(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
    ) -> RiskAssessmentResult:
        """
        Re-run the assessment for a submission under review.

        Raises:
            InvalidTransitionError: Submission is not SUBMITTED or UNDER_REVIEW
            StoreError: The assessment could not be stored
        """
        submission = await self.get_submission(store, submission_id)
        if submission.status not in OPEN_STATUSES:
            raise InvalidTransitionError(submission.status.value, "assess")

        result = await self.assessment_service.run_risk_assessment(store, submission, user_id)
        await self._reschedule_review(store, submission, result.assessment.overall_level)
        return result

    async def get_assessment(self, store: SubmissionStore, submission_id: str) -> RiskAssessment | None:
        await self.get_submission(store, submission_id)
        return await self.assessment_service.get_assessment_for_submission(store, submission_id)

    # -------------------------------------------------------------------------
    # Review records
    # -------------------------------------------------------------------------

    async def _risk_level(self, store: SubmissionStore, submission_id: str) -> RiskLevel | None:
        assessment = await store.get_assessment(submission_id)
        return assessment.overall_level if assessment else None

    def _schedule(
        self,
        submission: Submission,
        risk_level: RiskLevel | None,
    ) -> tuple[Priority, datetime]:
        level = risk_level or RiskLevel.MEDIUM
        start = submission.submitted_at or datetime.now(UTC)
        return (
            self.config.get_priority_for_risk_level(level),
            self.config.calculate_due_date(level, start),
        )

    async def ensure_review(self, store: SubmissionStore, submission: Submission) -> SubmissionReview:
        """Existing review, or a new one scheduled from the assessed risk level."""
        existing = await store.get_review(submission.id)
        if existing is not None:
            return existing

        priority, due_date = self._schedule(submission, await self._risk_level(store, submission.id))
        review = await store.create_review_if_missing(submission.id, priority, due_date)
        logger.info(
            "review_created",
            submission_id=submission.id,
            priority=review.priority.value,
            due_date=review.due_date.isoformat() if review.due_date else None,
        )
        return review

    async def _reschedule_review(
        self,
        store: SubmissionStore,
        submission: Submission,
        risk_level: RiskLevel,
    ) -> None:
        """Re-derive priority and due date after re-assessment. Escalation level is kept."""
        if await store.get_review(submission.id) is None:
            return
        priority, due_date = self._schedule(submission, risk_level)
        await store.update_review_schedule(submission.id, priority, due_date)

    # -------------------------------------------------------------------------
    # Reviewer decisions
    # -------------------------------------------------------------------------

    async def start_review(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
    ) -> DecisionResult:
        return await self._decide(store, submission_id, user_id, WorkflowAction.START_REVIEW)

    async def approve(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        notes: str | None = None,
    ) -> DecisionResult:
        return await self._decide(store, submission_id, user_id, WorkflowAction.APPROVE, notes)

    async def reject(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        notes: str | None,
    ) -> DecisionResult:
        """Reject; notes are required."""
        if not notes or not notes.strip():
            raise SubmissionValidationError(
                [{"field": "notes", "message": "Please provide a reason for rejection"}],
                "Rejection reason is required",
            )
        return await self._decide(store, submission_id, user_id, WorkflowAction.REJECT, notes)

    async def request_changes(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        notes: str | None,
    ) -> DecisionResult:
        """Send back to DRAFT with a visible comment describing the changes."""
        if not notes or not notes.strip():
            raise SubmissionValidationError(
                [{"field": "notes", "message": "Please specify what changes are required"}],
                "Change request details are required",
            )
        result = await self._decide(store, submission_id, user_id, WorkflowAction.REQUEST_CHANGES, notes)
        await store.add_comment(
            result.action.review_id,
            user_id,
            f"Changes Requested:\n\n{notes}",
            is_internal=False,
        )
        return result

    async def _decide(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        action: WorkflowAction,
        notes: str | None = None,
    ) -> DecisionResult:
        submission = await self.get_submission(store, submission_id)
        previous_status = submission.status
        new_status = self.workflow.get_next_status(previous_status, action)
        review_action_type, audit_action = DECISION_ACTIONS[action]

        review = await self.ensure_review(store, submission)
        updated = await store.set_status(submission_id, new_status, expected_status=previous_status)
        review_action = await store.add_review_action(
            review.id,
            user_id,
            review_action_type,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
        )

        await self.audit.log_status_change(
            store, submission_id, user_id, audit_action, previous_status, new_status, notes
        )
        await self.notifications.status_changed(
            submission_id, submission.submitted_by_id, submission.ai_system_name, new_status, notes
        )

        logger.info(
            "review_decision_recorded",
            submission_id=submission_id,
            action=action.value,
            previous_status=previous_status.value,
            new_status=new_status.value,
            user_id=user_id,
        )
        return DecisionResult(submission=updated, action=review_action, previous_status=previous_status)

    # -------------------------------------------------------------------------
    # Comments and history
    # -------------------------------------------------------------------------

    async def add_comment(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        data: CommentCreate,
    ) -> ReviewComment:
        if not data.content.strip():
            raise SubmissionValidationError(
                [{"field": "content", "message": "Comment content is required"}],
                "Comment content is required",
            )

        submission = await self.get_submission(store, submission_id)
        review = await self.ensure_review(store, submission)
        comment = await store.add_comment(
            review.id,
            user_id,
            data.content.strip(),
            is_internal=data.is_internal,
            section_name=data.section_name,
            field_name=data.field_name,
        )
        await self.audit.log_comment_added(store, submission_id, user_id, data.is_internal)
        return comment

    async def list_comments(
        self,
        store: SubmissionStore,
        submission_id: str,
        include_internal: bool = True,
    ) -> list[ReviewComment]:
        await self.get_submission(store, submission_id)
        review = await store.get_review(submission_id)
        if review is None:
            return []
        comments = await store.list_comments(review.id)
        return [c for c in comments if include_internal or not c.is_internal]

    async def review_history(self, store: SubmissionStore, submission_id: str) -> list[ReviewAction]:
        await self.get_submission(store, submission_id)
        review = await store.get_review(submission_id)
        return await store.list_review_actions(review.id) if review else []

    async def audit_history(self, store: SubmissionStore, submission_id: str) -> list[AuditLogEntry]:
        await self.get_submission(store, submission_id)
        return await self.audit.history(store, submission_id)

    # -------------------------------------------------------------------------
    # SLA and escalation
    # -------------------------------------------------------------------------

    async def sla_status(
        self,
        store: SubmissionStore,
        submission_id: str,
        now: datetime | None = None,
    ) -> SLAInfo:
        """SLA snapshot; "No SLA" until a review record exists."""
        submission = await self.get_submission(store, submission_id)
        review = await store.get_review(submission_id)
        return self.calculator.calculate_sla_status(
            submitted_at=submission.submitted_at,
            due_date=review.due_date if review else None,
            risk_level=await self._risk_level(store, submission_id),
            current_escalation_level=review.escalation_level if review else 0,
            now=now,
        )

    async def escalation_status(
        self,
        store: SubmissionStore,
        submission_id: str,
        now: datetime | None = None,
    ) -> EscalationStatus:
        """Whether an escalation is due, without changing anything."""
        submission = await self.get_submission(store, submission_id)
        review = await store.get_review(submission_id)
        if review is None or submission.submitted_at is None:
            return EscalationStatus(0, None, False, None, None, None)

        decision = self.calculator.check_escalation(
            submitted_at=submission.submitted_at,
            risk_level=await self._risk_level(store, submission_id),
            current_escalation_level=review.escalation_level,
            status=submission.status,
            now=now,
        )
        return EscalationStatus(
            escalation_level=review.escalation_level,
            escalated_at=review.escalated_at,
            needs_escalation=decision.should_escalate,
            next_level=decision.new_level if decision.should_escalate else None,
            priority=review.priority,
            due_date=review.due_date,
        )

    async def escalate(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str = SYSTEM_ACTOR,
        now: datetime | None = None,
    ) -> EscalationResult:
        """
        Raise the escalation level to what elapsed time warrants.

        Raises:
            InvalidTransitionError: Submission is not submitted
        """
        submission = await self.get_submission(store, submission_id)
        if submission.submitted_at is None or submission.status == SubmissionStatus.DRAFT:
            raise InvalidTransitionError(submission.status.value, "escalate")

        review = await self.ensure_review(store, submission)
        current = review.escalation_level
        decision = self.calculator.check_escalation(
            submitted_at=submission.submitted_at,
            risk_level=await self._risk_level(store, submission_id),
            current_escalation_level=current,
            status=submission.status,
            now=now,
        )
        if not decision.should_escalate:
            return EscalationResult(False, current, current, message="No escalation needed at this time")

        escalated_at = now or datetime.now(UTC)
        if not await store.advance_escalation(submission_id, decision.new_level, escalated_at):
            # Another caller escalated or decided first
            latest = await store.get_review(submission_id)
            level = latest.escalation_level if latest else current
            if (await self.get_submission(store, submission_id)).is_terminal:
                return EscalationResult(
                    False, current, level, message="Submission has already been decided"
                )
            return EscalationResult(False, current, level, message="Already escalated")

        tier = self.config.get_escalation_tier(decision.new_level)
        await store.add_review_action(
            review.id,
            user_id,
            ReviewActionType.ESCALATED,
            previous_status=submission.status,
            new_status=submission.status,
            notes=tier.action if tier else f"Escalated to level {decision.new_level}",
        )
        await self.audit.log_escalation(store, submission_id, user_id, current, decision.new_level)
        if tier is not None:
            await self.notifications.escalated(submission_id, submission.ai_system_name, tier)

        logger.warning(
            "submission_escalated",
            submission_id=submission_id,
            previous_level=current,
            new_level=decision.new_level,
        )
        return EscalationResult(
            escalated=True,
            previous_level=current,
            new_level=decision.new_level,
            escalated_at=escalated_at,
            notify_roles=list(tier.notify_roles) if tier else [],
        )

    async def review_queue(
        self,
        store: SubmissionStore,
        now: datetime | None = None,
    ) -> list[QueueEntry]:
        """
        Open submissions ordered for reviewers.

        Submissions without a review record are shown with the schedule
        their risk level would give them.
        """
        entries = []
        for submission in await store.list_submissions(OPEN_STATUSES):
            review = await store.get_review(submission.id)
            risk_level = await self._risk_level(store, submission.id)
            if review is not None:
                priority, due_date = review.priority, review.due_date
            else:
                priority, due_date = self._schedule(submission, risk_level)

            entries.append(
                self.calculator.build_queue_entry(
                    submission_id=submission.id,
                    ai_system_name=submission.ai_system_name,
                    status=submission.status,
                    submitted_at=submission.submitted_at,
                    due_date=due_date,
                    priority=priority,
                    risk_level=risk_level,
                    escalation_level=review.escalation_level if review else 0,
                    now=now,
                )
            )
        return sort_review_queue(entries)
