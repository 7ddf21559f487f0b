"""
Risk Assessment Database Model
==============================

SQLAlchemy ORM model for stored risk assessments.

Version: 0.1.0
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from shared.database.postgres import SCHEMA, Base
from shared.models.assessment import RiskLevel


def _utcnow() -> datetime:
    return datetime.now(UTC)


# Columns replaced wholesale on every upsert
ASSESSMENT_CONTENT_COLUMNS = (
    "overall_score",
    "overall_level",
    "data_privacy_score",
    "oversight_score",
    "compliance_score",
    "vendor_score",
    "risk_flags",
    "summary",
    "recommendations",
    "explanation",
)


class RiskAssessmentModel(Base):
    """
    One assessment per submission.

    Re-assessing replaces every content column; nothing is merged.
    """

    __tablename__ = "risk_assessments"
    __table_args__ = (
        CheckConstraint("overall_score >= 0 AND overall_score <= 100", name="check_overall_score"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(
        UUID(as_uuid=False),
        ForeignKey(f"{SCHEMA}.submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # Rule-based scores
    overall_score = Column(Integer, nullable=False)
    overall_level = Column(SQLEnum(RiskLevel, name="risk_level"), nullable=False)
    data_privacy_score = Column(Integer, nullable=False)
    oversight_score = Column(Integer, nullable=False)
    compliance_score = Column(Integer, nullable=False)
    vendor_score = Column(Integer, nullable=False)
    risk_flags = Column(ARRAY(Text), nullable=False, default=list)

    # Narrative
    summary = Column(Text, nullable=False)
    recommendations = Column(ARRAY(Text), nullable=False, default=list)
    explanation = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
