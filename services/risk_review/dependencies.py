"""
Risk Review Dependencies
========================

FastAPI dependencies and domain error translation.

Version: 0.1.0
"""

from fastapi import Header, HTTPException, status

from shared.logging import bind_context
from services.risk_review.errors import (
    InvalidTransitionError,
    ReviewNotFoundError,
    RiskReviewError,
    StoreError,
    SubmissionNotFoundError,
    SubmissionValidationError,
)
from services.risk_review.services.assessment import RiskAssessmentService
from services.risk_review.services.audit import AuditService
from services.risk_review.services.notifications import NotificationService, create_notifier
from services.risk_review.services.review import ReviewService


_review_service: ReviewService | None = None


def get_review_service() -> ReviewService:
    """Get the review service instance (singleton)."""
    global _review_service

    if _review_service is None:
        audit = AuditService()
        _review_service = ReviewService(
            assessment_service=RiskAssessmentService(audit=audit),
            audit=audit,
            notifications=NotificationService(create_notifier()),
        )
    return _review_service


def set_review_service(service: ReviewService) -> None:
    """Set a custom review service (mainly for tests)."""
    global _review_service
    _review_service = service


def reset_review_service() -> None:
    global _review_service
    _review_service = None


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Caller identity from the X-User-Id header.

    Authentication happens upstream; the header is trusted as-is.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    user_id = x_user_id.strip()
    bind_context(user_id=user_id)
    return user_id


def to_http_exception(error: RiskReviewError) -> HTTPException:
    """Map a domain error onto an HTTP error."""
    if isinstance(error, SubmissionNotFoundError | ReviewNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, InvalidTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, SubmissionValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(error), "issues": error.issues},
        )
    if isinstance(error, StoreError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is temporarily unavailable",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
