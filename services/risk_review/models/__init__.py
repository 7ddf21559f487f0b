"""
Risk Review Database Models
===========================

SQLAlchemy ORM models for the governance schema.

Tables:
- submissions: AI system intake forms
- submission_reviews: Review schedule and escalation state
- review_actions: Reviewer decisions
- review_comments: Review comments
- risk_assessments: Scores and narrative, one per submission
- audit_logs: Append-only audit trail

Version: 0.1.0
"""

from services.risk_review.models.assessment import (
    ASSESSMENT_CONTENT_COLUMNS,
    RiskAssessmentModel,
)
from services.risk_review.models.audit import AuditLogModel
from services.risk_review.models.review import (
    ReviewActionModel,
    ReviewCommentModel,
    SubmissionReviewModel,
)
from services.risk_review.models.submission import SubmissionModel

__all__ = [
    "SubmissionModel",
    "SubmissionReviewModel",
    "ReviewActionModel",
    "ReviewCommentModel",
    "RiskAssessmentModel",
    "ASSESSMENT_CONTENT_COLUMNS",
    "AuditLogModel",
]
