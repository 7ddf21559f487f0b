"""
Submission Database Model
=========================

SQLAlchemy ORM model for AI system intake submissions.

Version: 0.1.0
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from shared.database.postgres import Base
from shared.models.submission import SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubmissionModel(Base):
    """
    SQLAlchemy model for AI system submissions.

    One row per intake form. Status moves DRAFT -> SUBMITTED ->
    UNDER_REVIEW -> APPROVED | REJECTED, with request-changes returning
    to DRAFT.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_status", "status"),
        Index("ix_submissions_submitted_by", "submitted_by_id"),
        Index("ix_submissions_submitted_at", "submitted_at"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    submitted_by_id = Column(String(255), nullable=False)
    status = Column(
        SQLEnum(SubmissionStatus, name="submission_status"),
        nullable=False,
        default=SubmissionStatus.DRAFT,
    )

    # Basic information
    ai_system_name = Column(String(255))
    use_case = Column(Text)
    business_purpose = Column(Text)
    vendor = Column(String(255))
    current_stage = Column(String(50))
    number_of_users = Column(String(20))

    # Human oversight
    output_usage = Column(String(50))
    human_review_level = Column(String(50))

    # Data & privacy
    data_types = Column(ARRAY(String(50)), nullable=False, default=list)
    vendor_data_storage = Column(String(50))
    user_training_required = Column(Boolean, nullable=False, default=False)
    acceptable_use_required = Column(Boolean, nullable=False, default=False)

    # Ownership & accountability
    executive_sponsor_name = Column(String(255))
    executive_sponsor_title = Column(String(255))
    business_owner_name = Column(String(255))
    business_owner_email = Column(String(255))
    technical_owner_name = Column(String(255))
    technical_owner_email = Column(String(255))

    # Compliance & monitoring
    has_federal_contracts = Column(String(20))
    usage_logging_enabled = Column(Boolean, nullable=False, default=False)
    compliance_access = Column(Boolean, nullable=False, default=False)
    incident_response_doc = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    submitted_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<Submission {self.id} {self.status}>"
