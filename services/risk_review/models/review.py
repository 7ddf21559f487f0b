"""
Review Database Models
======================

SQLAlchemy ORM models for the reviewer workflow.

Tables:
- submission_reviews: one review per submission (priority, SLA, escalation)
- review_actions: append-only decision log
- review_comments: reviewer and submitter comments

Version: 0.1.0
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID

from shared.database.postgres import SCHEMA, Base
from shared.models.review import Priority, ReviewActionType
from shared.models.submission import SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubmissionReviewModel(Base):
    """Review record, created lazily on first reviewer or escalation touch."""

    __tablename__ = "submission_reviews"
    __table_args__ = (
        Index("ix_submission_reviews_due_date", "due_date"),
        CheckConstraint("escalation_level >= 0", name="check_escalation_level"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(
        UUID(as_uuid=False),
        ForeignKey(f"{SCHEMA}.submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    priority = Column(SQLEnum(Priority, name="review_priority"), nullable=False, default=Priority.NORMAL)
    due_date = Column(DateTime(timezone=True))

    # Only ever raised, see PostgresSubmissionStore.advance_escalation
    escalation_level = Column(Integer, nullable=False, default=0)
    escalated_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ReviewActionModel(Base):
    """Append-only reviewer action."""

    __tablename__ = "review_actions"
    __table_args__ = (Index("ix_review_actions_review", "review_id"),)

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    review_id = Column(
        UUID(as_uuid=False),
        ForeignKey(f"{SCHEMA}.submission_reviews.id", ondelete="CASCADE"),
        nullable=False,
    )
    performed_by_id = Column(String(255), nullable=False)
    action = Column(SQLEnum(ReviewActionType, name="review_action_type"), nullable=False)
    previous_status = Column(SQLEnum(SubmissionStatus, name="submission_status", create_type=False))
    new_status = Column(SQLEnum(SubmissionStatus, name="submission_status", create_type=False))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ReviewCommentModel(Base):
    """Comment attached to a review."""

    __tablename__ = "review_comments"
    __table_args__ = (Index("ix_review_comments_review", "review_id"),)

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    review_id = Column(
        UUID(as_uuid=False),
        ForeignKey(f"{SCHEMA}.submission_reviews.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    section_name = Column(String(100))
    field_name = Column(String(100))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
