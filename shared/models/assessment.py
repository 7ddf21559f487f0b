"""
Assessment Models
=================

Models for persisted AI risk assessments.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    """Overall risk tier."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskAssessmentData(BaseModel):
    """The replaceable content of an assessment: scores plus narrative."""

    overall_score: int = Field(..., ge=0, le=100)
    overall_level: RiskLevel
    data_privacy_score: int = Field(..., ge=0, le=100)
    oversight_score: int = Field(..., ge=0, le=100)
    compliance_score: int = Field(..., ge=0, le=100)
    vendor_score: int = Field(..., ge=0, le=100)
    risk_flags: list[str] = Field(default_factory=list)

    summary: str
    recommendations: list[str] = Field(default_factory=list)
    explanation: str


class RiskAssessment(RiskAssessmentData):
    """Stored assessment, one per submission."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    submission_id: str
    created_at: datetime
    updated_at: datetime
