"""
Submission Routes
=================

API endpoints for the AI system intake form.

Version: 0.1.0
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.models import RiskAssessment, Submission, SubmissionCreate, SubmissionUpdate
from services.risk_review.dependencies import (
    get_current_user_id,
    get_review_service,
    to_http_exception,
)
from services.risk_review.errors import RiskReviewError
from services.risk_review.services.review import ReviewService
from services.risk_review.store import SubmissionStore, get_store


logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class SubmitResponse(BaseModel):
    """Response after submitting a draft."""

    success: bool = True
    submission: Submission
    assessment: RiskAssessment | None = None
    assessment_status: str = Field(..., description="completed | fallback | failed")
    error: str | None = None


class AssessmentRunResponse(BaseModel):
    """Response after (re-)running an assessment."""

    success: bool = True
    assessment: RiskAssessment
    fallback: bool = False
    full_assessment: dict[str, Any] | None = None


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=Submission, status_code=status.HTTP_201_CREATED)
async def create_submission(
    data: SubmissionCreate,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> Submission:
    """Create a new draft submission."""
    try:
        return await service.create_submission(store, user_id, data)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.get("/{submission_id}", response_model=Submission)
async def get_submission(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> Submission:
    """Get a submission by ID."""
    try:
        return await service.get_submission(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.put("/{submission_id}", response_model=Submission)
async def update_submission(
    submission_id: str,
    data: SubmissionUpdate,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> Submission:
    """
    Save draft form fields.

    Only fields present in the body are changed.
    """
    try:
        return await service.update_submission(store, submission_id, user_id, data)
    except RiskReviewError as e:
        raise to_http_exception(e) from e


@router.post("/{submission_id}/submit", response_model=SubmitResponse)
async def submit_submission(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> SubmitResponse:
    """
    Submit a draft for review.

    The submission stays SUBMITTED even if the assessment could not be
    stored; ``assessment_status`` is then "failed".
    """
    try:
        result = await service.submit(store, submission_id, user_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    return SubmitResponse(
        success=result.assessment_status != "failed",
        submission=result.submission,
        assessment=result.assessment,
        assessment_status=result.assessment_status,
        error=result.error,
    )


@router.post("/{submission_id}/assessment", response_model=AssessmentRunResponse)
async def run_assessment(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> AssessmentRunResponse:
    """Re-run the risk assessment for a submitted system."""
    try:
        result = await service.retry_assessment(store, submission_id, user_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    logger.info("assessment_rerun", submission_id=submission_id, fallback=result.fallback)
    return AssessmentRunResponse(
        assessment=result.assessment,
        fallback=result.fallback,
        full_assessment=(
            result.full_assessment.model_dump(by_alias=True) if result.full_assessment else None
        ),
    )
