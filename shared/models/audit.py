"""
Audit Models
============

Append-only audit trail entries.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditAction(str, Enum):
    """What happened."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SUBMITTED = "SUBMITTED"
    ASSESSED = "ASSESSED"
    REVIEW_STARTED = "REVIEW_STARTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENT_ADDED = "COMMENT_ADDED"
    ESCALATED = "ESCALATED"


class AuditCategory(str, Enum):
    """Grouping used by the audit timeline."""

    LIFECYCLE = "LIFECYCLE"
    STATUS_CHANGE = "STATUS_CHANGE"
    FORM_EDIT = "FORM_EDIT"
    COMMENT = "COMMENT"


class AuditLogCreate(BaseModel):
    """Fields supplied when writing an audit entry."""

    submission_id: str
    performed_by_id: str
    action: AuditAction
    category: AuditCategory
    previous_status: str | None = None
    new_status: str | None = None
    field_name: str | None = None
    previous_value: str | None = None
    new_value: str | None = None
    description: str | None = None
    details: dict[str, Any] | None = None


class AuditLogEntry(AuditLogCreate):
    """Stored audit entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
