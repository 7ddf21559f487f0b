"""
Submission Store Interface
==========================

Abstract persistence interface for submissions, reviews, assessments
and the audit trail.

Implementations:
- PostgresSubmissionStore: SQLAlchemy async on PostgreSQL
- InMemorySubmissionStore: development and tests

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from shared.models import (
    AuditLogCreate,
    AuditLogEntry,
    Priority,
    ReviewAction,
    ReviewActionType,
    ReviewComment,
    RiskAssessment,
    RiskAssessmentData,
    Submission,
    SubmissionFields,
    SubmissionReview,
    SubmissionStatus,
)


class SubmissionStore(ABC):
    """
    Persistence boundary for the risk review service.

    Missing records raise SubmissionNotFoundError or ReviewNotFoundError.
    Persistence failures raise StoreError.
    """

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_submission(self, submission_id: str) -> Submission | None:
        ...

    @abstractmethod
    async def create_submission(self, submitted_by_id: str, data: SubmissionFields) -> Submission:
        ...

    @abstractmethod
    async def update_submission(self, submission_id: str, changes: dict[str, Any]) -> Submission:
        """Apply field changes and bump ``updated_at``."""
        ...

    @abstractmethod
    async def list_submissions(
        self,
        statuses: Iterable[SubmissionStatus] | None = None,
    ) -> list[Submission]:
        ...

    @abstractmethod
    async def set_status(
        self,
        submission_id: str,
        status: SubmissionStatus,
        submitted_at: datetime | None = None,
        expected_status: SubmissionStatus | None = None,
    ) -> Submission:
        """
        Change status; ``submitted_at`` is only written when given.

        With ``expected_status`` the write is conditional: it only applies
        while the stored status still equals it.

        Raises:
            InvalidTransitionError: Stored status no longer matches
            SubmissionNotFoundError: No such submission
        """
        ...

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_review(self, submission_id: str) -> SubmissionReview | None:
        ...

    @abstractmethod
    async def create_review_if_missing(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        """Return the existing review, or create one with the given schedule."""
        ...

    @abstractmethod
    async def update_review_schedule(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        ...

    @abstractmethod
    async def advance_escalation(
        self,
        submission_id: str,
        new_level: int,
        escalated_at: datetime,
    ) -> bool:
        """
        Atomically raise the escalation level.

        Writes only when ``new_level`` is greater than the stored level
        and the submission is not APPROVED or REJECTED.

        Returns:
            True if the stored level changed
        """
        ...

    @abstractmethod
    async def add_review_action(
        self,
        review_id: str,
        performed_by_id: str,
        action: ReviewActionType,
        previous_status: SubmissionStatus | None = None,
        new_status: SubmissionStatus | None = None,
        notes: str | None = None,
    ) -> ReviewAction:
        ...

    @abstractmethod
    async def list_review_actions(self, review_id: str) -> list[ReviewAction]:
        ...

    @abstractmethod
    async def add_comment(
        self,
        review_id: str,
        author_id: str,
        content: str,
        is_internal: bool = False,
        section_name: str | None = None,
        field_name: str | None = None,
    ) -> ReviewComment:
        ...

    @abstractmethod
    async def list_comments(self, review_id: str) -> list[ReviewComment]:
        ...

    # -------------------------------------------------------------------------
    # Assessments
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_assessment(
        self,
        submission_id: str,
        data: RiskAssessmentData,
    ) -> RiskAssessment:
        """Create or wholly replace the assessment for a submission."""
        ...

    @abstractmethod
    async def get_assessment(self, submission_id: str) -> RiskAssessment | None:
        ...

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry:
        ...

    @abstractmethod
    async def list_audit_logs(self, submission_id: str) -> list[AuditLogEntry]:
        """Oldest first."""
        ...

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "backend": type(self).__name__}
