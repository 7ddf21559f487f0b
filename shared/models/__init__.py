"""
Shared Models
=============

Pydantic models shared across the governance service.

Models:
- Submission models (Submission, SubmissionCreate, SubmissionUpdate)
- Review models (SubmissionReview, ReviewAction, ReviewComment)
- Assessment models (RiskAssessment, RiskLevel)
- Audit models (AuditLogEntry)
"""

from shared.models.assessment import (
    RiskAssessment,
    RiskAssessmentData,
    RiskLevel,
)
from shared.models.audit import (
    AuditAction,
    AuditCategory,
    AuditLogCreate,
    AuditLogEntry,
)
from shared.models.common import (
    HealthResponse,
    PaginatedResponse,
)
from shared.models.review import (
    CommentCreate,
    Priority,
    ReviewAction,
    ReviewActionType,
    ReviewComment,
    ReviewDecision,
    SubmissionReview,
)
from shared.models.submission import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    Submission,
    SubmissionCreate,
    SubmissionFields,
    SubmissionStatus,
    SubmissionUpdate,
)

__all__ = [
    # Submission
    "Submission",
    "SubmissionCreate",
    "SubmissionFields",
    "SubmissionStatus",
    "SubmissionUpdate",
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    # Review
    "CommentCreate",
    "Priority",
    "ReviewAction",
    "ReviewActionType",
    "ReviewComment",
    "ReviewDecision",
    "SubmissionReview",
    # Assessment
    "RiskAssessment",
    "RiskAssessmentData",
    "RiskLevel",
    # Audit
    "AuditAction",
    "AuditCategory",
    "AuditLogCreate",
    "AuditLogEntry",
    # Common
    "HealthResponse",
    "PaginatedResponse",
]
