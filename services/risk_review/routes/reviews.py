"""
Review Routes
=============

API endpoints for reviewers: queue, decisions, comments, SLA and
escalation.

Version: 0.1.0
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.models import (
    AuditLogEntry,
    CommentCreate,
    PaginatedResponse,
    Priority,
    ReviewAction,
    ReviewComment,
    ReviewDecision,
    RiskLevel,
    Submission,
    SubmissionStatus,
)
from services.risk_review.dependencies import (
    get_current_user_id,
    get_review_service,
    to_http_exception,
)
from services.risk_review.errors import RiskReviewError
from services.risk_review.jobs.escalation import EscalationSweep
from services.risk_review.services.review import DecisionResult, ReviewService
from services.risk_review.services.sla import SLAInfo, SLAStatus
from services.risk_review.store import SubmissionStore, get_store


logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class SLAResponse(BaseModel):
    """SLA snapshot for a submission."""

    status: SLAStatus
    label: str
    due_date: datetime | None = None
    hours_remaining: float | None = None
    hours_overdue: float | None = None
    percent_complete: float
    should_escalate: bool
    escalation_level: int
    display_text: str

    @classmethod
    def from_info(cls, info: SLAInfo) -> "SLAResponse":
        return cls(
            status=info.status,
            label=info.label,
            due_date=info.due_date,
            hours_remaining=info.hours_remaining,
            hours_overdue=info.hours_overdue,
            percent_complete=info.percent_complete,
            should_escalate=info.should_escalate,
            escalation_level=info.escalation_level,
            display_text=info.display_text,
        )


class QueueItemResponse(BaseModel):
    """One entry in the review queue."""

    submission_id: str
    ai_system_name: str | None = None
    status: SubmissionStatus
    submitted_at: datetime | None = None
    priority: Priority
    risk_level: RiskLevel | None = None
    priority_score: float
    sla: SLAResponse


class DecisionResponse(BaseModel):
    """Response after a reviewer decision."""

    success: bool = True
    submission: Submission
    action: ReviewAction
    previous_status: SubmissionStatus

    @classmethod
    def from_result(cls, result: DecisionResult) -> "DecisionResponse":
        return cls(
            submission=result.submission,
            action=result.action,
            previous_status=result.previous_status,
        )


class EscalationStatusResponse(BaseModel):
    """Escalation state for a submission."""

    escalation_level: int
    escalated_at: datetime | None = None
    needs_escalation: bool
    next_level: int | None = None
    priority: Priority | None = None
    due_date: datetime | None = None


class EscalationResponse(BaseModel):
    """Result of an escalation attempt."""

    escalated: bool
    previous_level: int
    new_level: int
    escalated_at: datetime | None = None
    message: str | None = None
    notify_roles: list[str] = Field(default_factory=list)


class SweepResponse(BaseModel):
    """Result of an escalation sweep."""

    checked: int
    escalated: int
    failed: int
    escalated_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Queue and sweep
# =============================================================================


@router.get("", response_model=PaginatedResponse[QueueItemResponse])
async def get_review_queue(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> PaginatedResponse[QueueItemResponse]:
    """Open submissions, most urgent first."""
    try:
        entries = await service.review_queue(store)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    items = [
        QueueItemResponse(
            submission_id=entry.submission_id,
            ai_system_name=entry.ai_system_name,
            status=entry.status,
            submitted_at=entry.submitted_at,
            priority=entry.priority,
            risk_level=entry.risk_level,
            priority_score=entry.priority_score,
            sla=SLAResponse.from_info(entry.sla),
        )
        for entry in entries
    ]
    return PaginatedResponse.from_items(items, page, page_size)


@router.post("/escalations/sweep", response_model=SweepResponse)
async def run_escalation_sweep(
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> SweepResponse:
    """Escalate every open submission that is due for it."""
    report = await EscalationSweep(service).run_once(store)
    logger.info("escalation_sweep_triggered", user_id=user_id, escalated=report.escalated)
    return SweepResponse(
        checked=report.checked,
        escalated=report.escalated,
        failed=report.failed,
        escalated_ids=list(report.escalated_ids),
    )


# =============================================================================
# Decisions
# =============================================================================


@router.post("/{submission_id}/start", response_model=DecisionResponse)
async def start_review(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> DecisionResponse:
    """Move a submitted system to UNDER_REVIEW."""
    try:
        result = await service.start_review(store, submission_id, user_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e
    return DecisionResponse.from_result(result)


@router.post("/{submission_id}/approve", response_model=DecisionResponse)
async def approve_submission(
    submission_id: str,
    decision: ReviewDecision | None = None,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> DecisionResponse:
    """Approve a submission; notes are optional."""
    try:
        result = await service.approve(
            store, submission_id, user_id, decision.notes if decision else None
        )
    except RiskReviewError as e:
        raise to_http_exception(e) from e
    return DecisionResponse.from_result(result)


@router.post("/{submission_id}/reject", response_model=DecisionResponse)
async def reject_submission(
    submission_id: str,
    decision: ReviewDecision,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> DecisionResponse:
    """Reject a submission; a reason is required."""
    try:
        result = await service.reject(store, submission_id, user_id, decision.notes)
    except RiskReviewError as e:
        raise to_http_exception(e) from e
    return DecisionResponse.from_result(result)


@router.post("/{submission_id}/request-changes", response_model=DecisionResponse)
async def request_changes(
    submission_id: str,
    decision: ReviewDecision,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> DecisionResponse:
    """Send a submission back to its owner as a draft."""
    try:
        result = await service.request_changes(store, submission_id, user_id, decision.notes)
    except RiskReviewError as e:
        raise to_http_exception(e) from e
    return DecisionResponse.from_result(result)


# =============================================================================
# Comments and history
# =============================================================================


@router.post("/{submission_id}/comments", response_model=ReviewComment, status_code=201)
async def add_comment(
    submission_id: str,
    data: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> ReviewComment:
    try:
        return await service.add_comment(store, submission_id, user_id, data)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.get("/{submission_id}/comments", response_model=list[ReviewComment])
async def list_comments(
    submission_id: str,
    include_internal: bool = Query(default=True, description="Include reviewer-only comments"),
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> list[ReviewComment]:
    try:
        return await service.list_comments(store, submission_id, include_internal)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.get("/{submission_id}/actions", response_model=list[ReviewAction])
async def list_review_actions(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> list[ReviewAction]:
    try:
        return await service.review_history(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.get("/{submission_id}/audit", response_model=list[AuditLogEntry])
async def get_audit_trail(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> list[AuditLogEntry]:
    """Audit trail for a submission, oldest first."""
    try:
        return await service.audit_history(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


# =============================================================================
# SLA and escalation
# =============================================================================


@router.get("/{submission_id}/sla", response_model=SLAResponse)
async def get_sla_status(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> SLAResponse:
    try:
        info = await service.sla_status(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e
    return SLAResponse.from_info(info)


@router.get("/{submission_id}/escalate", response_model=EscalationStatusResponse)
async def get_escalation_status(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> EscalationStatusResponse:
    """Whether an escalation is due. Changes nothing."""
    try:
        result = await service.escalation_status(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    return EscalationStatusResponse(
        escalation_level=result.escalation_level,
        escalated_at=result.escalated_at,
        needs_escalation=result.needs_escalation,
        next_level=result.next_level,
        priority=result.priority,
        due_date=result.due_date,
    )


@router.post("/{submission_id}/escalate", response_model=EscalationResponse)
async def escalate_submission(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> EscalationResponse:
    """Escalate a submission if elapsed time warrants it."""
    try:
        result = await service.escalate(store, submission_id, user_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    return EscalationResponse(
        escalated=result.escalated,
        previous_level=result.previous_level,
        new_level=result.new_level,
        escalated_at=result.escalated_at,
        message=result.message,
        notify_roles=result.notify_roles,
    )
