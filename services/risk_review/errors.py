"""
Risk Review Errors
==================

Domain exceptions raised by the risk review services.

Routes translate these into HTTP responses; jobs log and continue.

Version: 0.1.0
"""

from typing import Any


class RiskReviewError(Exception):
    """Base error for the risk review service."""


class SubmissionNotFoundError(RiskReviewError):
    """No submission with the given id."""

    def __init__(self, submission_id: str) -> None:
        super().__init__(f"Submission {submission_id} not found")
        self.submission_id = submission_id


class ReviewNotFoundError(RiskReviewError):
    """Submission has no review record yet."""

    def __init__(self, submission_id: str) -> None:
        super().__init__(f"No review record exists for submission {submission_id}")
        self.submission_id = submission_id


class InvalidTransitionError(RiskReviewError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: str, action: str) -> None:
        super().__init__(f"Cannot {action} a submission in status {current}")
        self.current = current
        self.action = action


class SubmissionValidationError(RiskReviewError):
    """Submission is incomplete or malformed."""

    def __init__(self, issues: list[dict[str, Any]], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.issues = issues


class AnalysisError(RiskReviewError):
    """Narrative analysis could not be produced. Always recovered with the fallback."""


class StoreError(RiskReviewError):
    """Persistence failed."""
