"""
In-Memory Submission Store
==========================

Dictionary-backed store for development and testing.

Data is held in memory and lost on restart. A single asyncio lock
serialises writes so status changes and escalation re-check their
preconditions under concurrent callers.

Version: 0.1.0
"""

import asyncio
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from shared.logging import get_logger
from shared.models import (
    TERMINAL_STATUSES,
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
from services.risk_review.errors import (
    InvalidTransitionError,
    ReviewNotFoundError,
    StoreError,
    SubmissionNotFoundError,
)
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemorySubmissionStore(SubmissionStore):
    """
    In-memory submission store.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

        self._submissions: dict[str, Submission] = {}
        self._assessments: dict[str, RiskAssessment] = {}
        self._audit_logs: list[AuditLogEntry] = []

        # Reviews by submission id; actions and comments by review id
        self._reviews: dict[str, SubmissionReview] = {}
        self._actions: dict[str, list[ReviewAction]] = {}
        self._comments: dict[str, list[ReviewComment]] = {}

        logger.debug("memory_store_initialized")

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def get_submission(self, submission_id: str) -> Submission | None:
        submission = self._submissions.get(submission_id)
        return submission.model_copy(deep=True) if submission else None

    async def create_submission(self, submitted_by_id: str, data: SubmissionFields) -> Submission:
        now = _now()
        submission = Submission(
            **data.model_dump(),
            id=_new_id(),
            submitted_by_id=submitted_by_id,
            status=SubmissionStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._submissions[submission.id] = submission
        return submission.model_copy(deep=True)

    async def update_submission(self, submission_id: str, changes: dict[str, Any]) -> Submission:
        async with self._lock:
            current = self._require(submission_id)
            updated = current.model_copy(update={**changes, "updated_at": _now()}, deep=True)
            self._submissions[submission_id] = updated
        return updated.model_copy(deep=True)

    async def list_submissions(
        self,
        statuses: Iterable[SubmissionStatus] | None = None,
    ) -> list[Submission]:
        wanted = set(statuses) if statuses is not None else None
        return [
            submission.model_copy(deep=True)
            for submission in sorted(self._submissions.values(), key=lambda s: s.created_at)
            if wanted is None or submission.status in wanted
        ]

    async def set_status(
        self,
        submission_id: str,
        status: SubmissionStatus,
        submitted_at: datetime | None = None,
        expected_status: SubmissionStatus | None = None,
    ) -> Submission:
        changes: dict[str, Any] = {"status": status, "updated_at": _now()}
        if submitted_at is not None:
            changes["submitted_at"] = submitted_at
        async with self._lock:
            current = self._require(submission_id)
            if expected_status is not None and current.status != expected_status:
                raise InvalidTransitionError(current.status.value, "change status of")
            updated = current.model_copy(update=changes, deep=True)
            self._submissions[submission_id] = updated
        return updated.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    async def get_review(self, submission_id: str) -> SubmissionReview | None:
        review = self._reviews.get(submission_id)
        return review.model_copy() if review else None

    async def create_review_if_missing(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        async with self._lock:
            self._require(submission_id)
            review = self._reviews.get(submission_id)
            if review is None:
                now = _now()
                review = SubmissionReview(
                    id=_new_id(),
                    submission_id=submission_id,
                    priority=priority,
                    due_date=due_date,
                    created_at=now,
                    updated_at=now,
                )
                self._reviews[submission_id] = review
                self._actions[review.id] = []
                self._comments[review.id] = []
        return review.model_copy()

    async def update_review_schedule(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        async with self._lock:
            review = self._require_review(submission_id)
            review = review.model_copy(
                update={"priority": priority, "due_date": due_date, "updated_at": _now()}
            )
            self._reviews[submission_id] = review
        return review.model_copy()

    async def advance_escalation(
        self,
        submission_id: str,
        new_level: int,
        escalated_at: datetime,
    ) -> bool:
        async with self._lock:
            review = self._require_review(submission_id)
            if new_level <= review.escalation_level:
                return False
            if self._require(submission_id).status in TERMINAL_STATUSES:
                return False
            self._reviews[submission_id] = review.model_copy(
                update={
                    "escalation_level": new_level,
                    "escalated_at": escalated_at,
                    "updated_at": _now(),
                }
            )
        return True

    async def add_review_action(
        self,
        review_id: str,
        performed_by_id: str,
        action: ReviewActionType,
        previous_status: SubmissionStatus | None = None,
        new_status: SubmissionStatus | None = None,
        notes: str | None = None,
    ) -> ReviewAction:
        record = ReviewAction(
            id=_new_id(),
            review_id=review_id,
            performed_by_id=performed_by_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            created_at=_now(),
        )
        async with self._lock:
            self._review_list(self._actions, review_id).append(record)
        return record.model_copy()

    async def list_review_actions(self, review_id: str) -> list[ReviewAction]:
        return [action.model_copy() for action in self._actions.get(review_id, [])]

    async def add_comment(
        self,
        review_id: str,
        author_id: str,
        content: str,
        is_internal: bool = False,
        section_name: str | None = None,
        field_name: str | None = None,
    ) -> ReviewComment:
        record = ReviewComment(
            id=_new_id(),
            review_id=review_id,
            author_id=author_id,
            content=content,
            is_internal=is_internal,
            section_name=section_name,
            field_name=field_name,
            created_at=_now(),
        )
        async with self._lock:
            self._review_list(self._comments, review_id).append(record)
        return record.model_copy()

    async def list_comments(self, review_id: str) -> list[ReviewComment]:
        return [comment.model_copy() for comment in self._comments.get(review_id, [])]

    # -------------------------------------------------------------------------
    # Assessments
    # -------------------------------------------------------------------------

    async def upsert_assessment(
        self,
        submission_id: str,
        data: RiskAssessmentData,
    ) -> RiskAssessment:
        async with self._lock:
            self._require(submission_id)
            now = _now()
            existing = self._assessments.get(submission_id)
            assessment = RiskAssessment(
                **data.model_dump(),
                id=existing.id if existing else _new_id(),
                submission_id=submission_id,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._assessments[submission_id] = assessment
        return assessment.model_copy(deep=True)

    async def get_assessment(self, submission_id: str) -> RiskAssessment | None:
        assessment = self._assessments.get(submission_id)
        return assessment.model_copy(deep=True) if assessment else None

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def add_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry:
        record = AuditLogEntry(**entry.model_dump(), id=_new_id(), created_at=_now())
        async with self._lock:
            self._audit_logs.append(record)
        return record.model_copy(deep=True)

    async def list_audit_logs(self, submission_id: str) -> list[AuditLogEntry]:
        return [
            entry.model_copy(deep=True)
            for entry in self._audit_logs
            if entry.submission_id == submission_id
        ]

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "backend": "memory",
            "submissions": len(self._submissions),
            "reviews": len(self._reviews),
            "assessments": len(self._assessments),
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, submission_id: str) -> Submission:
        submission = self._submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    def _require_review(self, submission_id: str) -> SubmissionReview:
        review = self._reviews.get(submission_id)
        if review is None:
            raise ReviewNotFoundError(submission_id)
        return review

    @staticmethod
    def _review_list(index: dict[str, list[Any]], review_id: str) -> list[Any]:
        if review_id not in index:
            raise StoreError(f"Review {review_id} does not exist")
        return index[review_id]

    def clear_all(self) -> None:
        """Drop all stored data."""
        self._submissions.clear()
        self._assessments.clear()
        self._audit_logs.clear()
        self._reviews.clear()
        self._actions.clear()
        self._comments.clear()
        logger.debug("memory_store_cleared")
