"""
Audit Log Database Model
========================

SQLAlchemy ORM model for the append-only audit trail.

Version: 0.1.0
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID

from shared.database.postgres import SCHEMA, Base
from shared.models.audit import AuditAction, AuditCategory


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuditLogModel(Base):
    """Audit entry. Rows are inserted, never updated."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_submission", "submission_id", "created_at"),
        Index("ix_audit_logs_action", "action"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(
        UUID(as_uuid=False),
        ForeignKey(f"{SCHEMA}.submissions.id", ondelete="CASCADE"),
        nullable=False,
    )
    performed_by_id = Column(String(255), nullable=False)

    action = Column(SQLEnum(AuditAction, name="audit_action"), nullable=False)
    category = Column(SQLEnum(AuditCategory, name="audit_category"), nullable=False)

    previous_status = Column(String(20))
    new_status = Column(String(20))

    field_name = Column(String(100))
    previous_value = Column(Text)
    new_value = Column(Text)

    description = Column(Text)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
