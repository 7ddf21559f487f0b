"""
Review Models
=============

Models for reviewer workflow records: the review itself, its
append-only action log and comments.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from shared.models.submission import SubmissionStatus


class Priority(str, Enum):
    """Review queue priority."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ReviewActionType(str, Enum):
    """Actions recorded on a review."""

    REVIEW_STARTED = "REVIEW_STARTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    ESCALATED = "ESCALATED"


class SubmissionReview(BaseModel):
    """Review record, one per submission."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    submission_id: str
    priority: Priority = Priority.NORMAL
    due_date: datetime | None = None
    escalation_level: int = Field(default=0, ge=0)
    escalated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ReviewAction(BaseModel):
    """One entry in the append-only review action log."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    review_id: str
    performed_by_id: str
    action: ReviewActionType
    previous_status: SubmissionStatus | None = None
    new_status: SubmissionStatus | None = None
    notes: str | None = None
    created_at: datetime


class ReviewComment(BaseModel):
    """Reviewer comment on a submission."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    review_id: str
    author_id: str
    content: str
    is_internal: bool = False
    section_name: str | None = None
    field_name: str | None = None
    created_at: datetime


class ReviewDecision(BaseModel):
    """Request body for approve / reject / request-changes."""

    notes: str | None = None


class CommentCreate(BaseModel):
    """Request body for adding a comment."""

    content: str
    is_internal: bool = False
    section_name: str | None = None
    field_name: str | None = None
