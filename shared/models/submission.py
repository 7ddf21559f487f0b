"""
Submission Models
=================

Models for AI system intake submissions.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SubmissionStatus(str, Enum):
    """Submission lifecycle status."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})
OPEN_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.UNDER_REVIEW})


class SubmissionFields(BaseModel):
    """Intake form fields. Everything is optional while in draft."""

    # Basic information
    ai_system_name: str | None = None
    use_case: str | None = None
    business_purpose: str | None = None
    vendor: str | None = None
    current_stage: str | None = Field(
        default=None,
        description="evaluation | development | testing | production",
    )
    number_of_users: str | None = Field(
        default=None,
        description="1-10 | 11-50 | 51-200 | 201-1000 | 1000+",
    )

    # Human oversight
    output_usage: str | None = Field(
        default=None,
        description="direct_action | automated_with_oversight | advisory_only | human_review_required",
    )
    human_review_level: str | None = Field(
        default=None,
        description="none | spot_check | review_before_critical | always_reviewed",
    )

    # Data & privacy
    data_types: list[str] = Field(default_factory=list)
    vendor_data_storage: str | None = Field(
        default=None,
        description="none | temporary | persistent | unknown",
    )
    user_training_required: bool = False
    acceptable_use_required: bool = False

    # Ownership & accountability
    executive_sponsor_name: str | None = None
    executive_sponsor_title: str | None = None
    business_owner_name: str | None = None
    business_owner_email: str | None = None
    technical_owner_name: str | None = None
    technical_owner_email: str | None = None

    # Compliance & monitoring
    has_federal_contracts: str | None = Field(default=None, description="yes | no | unknown")
    usage_logging_enabled: bool = False
    compliance_access: bool = False
    incident_response_doc: bool = False


class SubmissionCreate(SubmissionFields):
    """Request model for creating a draft submission."""


class SubmissionUpdate(SubmissionFields):
    """Request model for editing a draft. Only fields sent are applied."""


class Submission(SubmissionFields):
    """Full submission record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    submitted_by_id: str
    status: SubmissionStatus = SubmissionStatus.DRAFT
    created_at: datetime
    submitted_at: datetime | None = None
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        """Approved or rejected."""
        return self.status in TERMINAL_STATUSES
