"""
Assessment Routes
=================

Read access to stored risk assessments.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, HTTPException, status

from shared.models import RiskAssessment
from services.risk_review.dependencies import (
    get_current_user_id,
    get_review_service,
    to_http_exception,
)
from services.risk_review.errors import RiskReviewError
from services.risk_review.services.review import ReviewService
from services.risk_review.services.risk_rules import category_label
from services.risk_review.store import SubmissionStore, get_store


router = APIRouter()


@router.get("/{submission_id}", response_model=RiskAssessment)
async def get_assessment(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> RiskAssessment:
    """Get the stored assessment for a submission."""
    try:
        assessment = await service.get_assessment(store, submission_id)
    except RiskReviewError as e:
        raise to_http_exception(e) from e

    if assessment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No assessment found for submission {submission_id}",
        )
    return assessment


@router.get("/{submission_id}/categories")
async def get_category_breakdown(
    submission_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SubmissionStore = Depends(get_store),
    service: ReviewService = Depends(get_review_service),
) -> dict[str, dict[str, int | str]]:
    """Category scores with their display labels."""
    assessment = await get_assessment(submission_id, user_id, store, service)
    scores = {
        "data_privacy": assessment.data_privacy_score,
        "oversight": assessment.oversight_score,
        "compliance": assessment.compliance_score,
        "vendor": assessment.vendor_score,
    }
    return {name: {"score": score, "label": category_label(score)} for name, score in scores.items()}
