"""
Risk Assessment Service
=======================

Orchestrates a risk assessment for a submitted AI system.

Pipeline:
1. Rule-based scoring (deterministic)
2. Narrative analysis under a bounded wait, with a deterministic fallback
3. Upsert of the complete assessment record (replace, never merge)
4. ASSESSED audit entry

Narrative failures never reach the caller. Store failures do.

Version: 0.1.0
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from shared.config import settings
from shared.logging import get_logger
from shared.models import RiskAssessment, RiskAssessmentData, Submission, SubmissionFields
from services.risk_review.services.analysis import (
    FullAssessment,
    LLMNarrativeAnalyzer,
    NarrativeAnalysis,
    NarrativeAnalyzer,
    build_fallback_analysis,
)
from services.risk_review.services.audit import AuditService
from services.risk_review.services.risk_rules import RiskScorer, RiskScores
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)

# Fields sent to the narrative analyzer; ownership contacts stay local
GOVERNANCE_FIELDS: tuple[str, ...] = (
    "ai_system_name",
    "use_case",
    "business_purpose",
    "vendor",
    "current_stage",
    "number_of_users",
    "output_usage",
    "human_review_level",
    "data_types",
    "vendor_data_storage",
    "user_training_required",
    "acceptable_use_required",
    "has_federal_contracts",
    "usage_logging_enabled",
    "compliance_access",
    "incident_response_doc",
)


def governance_fields(submission: SubmissionFields) -> dict[str, Any]:
    """Flat dict of the governance-relevant fields of a submission."""
    data = submission.model_dump(include=set(GOVERNANCE_FIELDS))
    return {name: data.get(name) for name in GOVERNANCE_FIELDS}


@dataclass
class RiskAssessmentResult:
    """Stored assessment plus how it was produced."""

    assessment: RiskAssessment
    scores: RiskScores
    fallback: bool = False
    full_assessment: FullAssessment | None = None


class RiskAssessmentService:
    """
    Risk assessment orchestrator.

    Example:
        >>> service = RiskAssessmentService()
        >>> result = await service.run_risk_assessment(store, submission)
        >>> result.assessment.overall_level
        <RiskLevel.HIGH: 'HIGH'>
    """

    def __init__(
        self,
        analyzer: NarrativeAnalyzer | None = None,
        scorer: RiskScorer | None = None,
        audit: AuditService | None = None,
        timeout_seconds: float | None = None,
        analysis_enabled: bool | None = None,
    ) -> None:
        self.analyzer = analyzer or LLMNarrativeAnalyzer()
        self.scorer = scorer or RiskScorer()
        self.audit = audit or AuditService()
        self.timeout_seconds = timeout_seconds or settings.analysis.timeout_seconds
        self.analysis_enabled = (
            settings.analysis.enabled if analysis_enabled is None else analysis_enabled
        )

    async def run_risk_assessment(
        self,
        store: SubmissionStore,
        submission: Submission,
        performed_by_id: str | None = None,
    ) -> RiskAssessmentResult:
        """
        Score, narrate and store an assessment for a submission.

        Args:
            store: Submission store
            submission: Submission to assess
            performed_by_id: Actor recorded on the audit entry

        Returns:
            RiskAssessmentResult with the stored record

        Raises:
            StoreError: The assessment could not be stored
        """
        scores = self.scorer.score(submission)
        logger.info(
            "risk_scores_calculated",
            submission_id=submission.id,
            overall_score=scores.overall_score,
            overall_level=scores.overall_level.value,
            flags=len(scores.risk_flags),
        )

        narrative = await self._narrate(submission, scores)

        data = RiskAssessmentData(
            overall_score=scores.overall_score,
            overall_level=scores.overall_level,
            data_privacy_score=scores.data_privacy_score,
            oversight_score=scores.oversight_score,
            compliance_score=scores.compliance_score,
            vendor_score=scores.vendor_score,
            risk_flags=list(scores.risk_flags),
            summary=narrative.summary,
            recommendations=list(narrative.recommendations),
            explanation=narrative.explanation,
        )
        assessment = await store.upsert_assessment(submission.id, data)

        logger.info(
            "risk_assessment_stored",
            submission_id=submission.id,
            assessment_id=assessment.id,
            overall_level=assessment.overall_level.value,
            fallback=narrative.fallback,
        )

        await self.audit.log_assessed(
            store,
            submission.id,
            performed_by_id or submission.submitted_by_id,
            overall_level=assessment.overall_level.value,
            overall_score=assessment.overall_score,
            fallback=narrative.fallback,
        )

        return RiskAssessmentResult(
            assessment=assessment,
            scores=scores,
            fallback=narrative.fallback,
            full_assessment=narrative.full_assessment,
        )

    async def _narrate(self, submission: Submission, scores: RiskScores) -> NarrativeAnalysis:
        """Narrative from the analyzer, or the fallback on any failure."""
        if not self.analysis_enabled:
            return build_fallback_analysis(scores)

        try:
            return await asyncio.wait_for(
                self.analyzer.analyze(governance_fields(submission), scores),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "risk_analysis_fallback",
                submission_id=submission.id,
                reason="timeout",
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "risk_analysis_fallback",
                submission_id=submission.id,
                reason=type(e).__name__,
                error=str(e),
            )
        return build_fallback_analysis(scores)

    async def get_assessment_for_submission(
        self,
        store: SubmissionStore,
        submission_id: str,
    ) -> RiskAssessment | None:
        """Stored assessment for a submission, or None."""
        return await store.get_assessment(submission_id)
