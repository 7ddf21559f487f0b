"""
Risk Assessment Service Tests
=============================

Tests for the scoring, narrative and storage pipeline.

Version: 0.1.0
"""

import asyncio
import json
from typing import Any

import pytest

from shared.models import AuditAction, RiskAssessmentData, RiskLevel, Submission, SubmissionCreate
from services.risk_review.errors import AnalysisError, StoreError
from services.risk_review.services.analysis import LLMNarrativeAnalyzer, NarrativeAnalysis, NarrativeAnalyzer
from services.risk_review.services.assessment import (
    GOVERNANCE_FIELDS,
    RiskAssessmentService,
    governance_fields,
)
from services.risk_review.services.risk_rules import RiskScores
from services.risk_review.store import InMemorySubmissionStore
from tests.conftest import FakeLLMProvider, StaticAnalyzer


class SlowAnalyzer(NarrativeAnalyzer):
    async def analyze(self, submission_data: dict[str, Any], scores: RiskScores) -> NarrativeAnalysis:
        await asyncio.sleep(5)
        return NarrativeAnalysis(summary="too late")


class BrokenAnalyzer(NarrativeAnalyzer):
    async def analyze(self, submission_data: dict[str, Any], scores: RiskScores) -> NarrativeAnalysis:
        raise AnalysisError("model returned nonsense")


class FailingUpsertStore(InMemorySubmissionStore):
    async def upsert_assessment(self, submission_id: str, data: RiskAssessmentData) -> Any:
        raise StoreError("database unavailable")


async def _create(store: InMemorySubmissionStore, data: dict[str, Any]) -> Submission:
    return await store.create_submission("owner-1", SubmissionCreate(**data))


class TestRiskAssessmentService:
    """Tests for RiskAssessmentService."""

    @pytest.mark.asyncio
    async def test_stores_model_narrative(
        self,
        store: InMemorySubmissionStore,
        analyzer: StaticAnalyzer,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _create(store, high_risk_submission_data)
        service = RiskAssessmentService(analyzer=analyzer)

        result = await service.run_risk_assessment(store, submission)

        assert not result.fallback
        assert result.assessment.summary == "Model summary"
        assert result.assessment.overall_level == RiskLevel.CRITICAL
        assert result.assessment.overall_score == 96
        assert result.assessment.risk_flags == result.scores.risk_flags
        assert await store.get_assessment(submission.id) == result.assessment

    @pytest.mark.asyncio
    async def test_writes_assessed_audit_entry(
        self,
        store: InMemorySubmissionStore,
        analyzer: StaticAnalyzer,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _create(store, sample_submission_data)

        await RiskAssessmentService(analyzer=analyzer).run_risk_assessment(store, submission, "reviewer-9")

        entries = await store.list_audit_logs(submission.id)
        assert [e.action for e in entries] == [AuditAction.ASSESSED]
        assert entries[0].performed_by_id == "reviewer-9"
        assert entries[0].description == "Risk assessed as LOW (5/100)"
        assert entries[0].details == {"fallback": False}

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback(
        self, store: InMemorySubmissionStore, sample_submission_data: dict[str, Any]
    ) -> None:
        submission = await _create(store, sample_submission_data)
        service = RiskAssessmentService(analyzer=SlowAnalyzer(), timeout_seconds=0.05)

        result = await service.run_risk_assessment(store, submission)

        assert result.fallback
        assert result.assessment.summary.startswith("This AI system has been assessed as LOW risk.")

    @pytest.mark.asyncio
    async def test_analyzer_error_uses_fallback(
        self, store: InMemorySubmissionStore, high_risk_submission_data: dict[str, Any]
    ) -> None:
        submission = await _create(store, high_risk_submission_data)

        result = await RiskAssessmentService(analyzer=BrokenAnalyzer()).run_risk_assessment(store, submission)

        assert result.fallback
        assert len(result.assessment.recommendations) == 4
        assert "Fallback Analysis" in result.assessment.explanation

    @pytest.mark.asyncio
    async def test_blank_model_narrative_uses_fallback(
        self, store: InMemorySubmissionStore, sample_submission_data: dict[str, Any]
    ) -> None:
        submission = await _create(store, sample_submission_data)
        provider = FakeLLMProvider(content=json.dumps({"summary": "", "recommendations": [], "explanation": " "}))
        service = RiskAssessmentService(analyzer=LLMNarrativeAnalyzer(provider=provider))

        result = await service.run_risk_assessment(store, submission)

        assert result.fallback
        assert result.assessment.summary
        assert result.assessment.explanation
        assert "Fallback Analysis" in result.assessment.explanation

    @pytest.mark.asyncio
    async def test_disabled_analysis_skips_analyzer(
        self,
        store: InMemorySubmissionStore,
        analyzer: StaticAnalyzer,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _create(store, sample_submission_data)
        service = RiskAssessmentService(analyzer=analyzer, analysis_enabled=False)

        result = await service.run_risk_assessment(store, submission)

        assert result.fallback
        assert analyzer.calls == 0

    @pytest.mark.asyncio
    async def test_rerun_replaces_assessment(
        self, store: InMemorySubmissionStore, sample_submission_data: dict[str, Any]
    ) -> None:
        """Test a second run keeps the record id and replaces every field."""
        submission = await _create(store, sample_submission_data)
        first = await RiskAssessmentService(analyzer=StaticAnalyzer("first")).run_risk_assessment(
            store, submission
        )
        second = await RiskAssessmentService(analyzer=StaticAnalyzer("second")).run_risk_assessment(
            store, submission
        )

        assert second.assessment.id == first.assessment.id
        assert second.assessment.created_at == first.assessment.created_at
        assert (await store.get_assessment(submission.id)).summary == "second"

    @pytest.mark.asyncio
    async def test_store_failure_propagates(
        self, analyzer: StaticAnalyzer, sample_submission_data: dict[str, Any]
    ) -> None:
        store = FailingUpsertStore()
        submission = await _create(store, sample_submission_data)

        with pytest.raises(StoreError):
            await RiskAssessmentService(analyzer=analyzer).run_risk_assessment(store, submission)

        assert await store.get_assessment(submission.id) is None

    @pytest.mark.asyncio
    async def test_get_assessment_for_submission(
        self, store: InMemorySubmissionStore, analyzer: StaticAnalyzer
    ) -> None:
        service = RiskAssessmentService(analyzer=analyzer)

        assert await service.get_assessment_for_submission(store, "missing") is None


class TestGovernanceFields:
    def test_contacts_are_not_sent(self, sample_submission: SubmissionCreate) -> None:
        fields = governance_fields(sample_submission)

        assert tuple(fields) == GOVERNANCE_FIELDS
        assert "business_owner_email" not in fields
        assert fields["ai_system_name"] == "Contract Summarizer"
