"""
Narrative Analysis Tests
========================

Tests for response parsing, the deterministic fallback and the LLM
analyzer.

Version: 0.1.0
"""

import json
from typing import Any

import pytest

from shared.models import SubmissionFields
from services.risk_review.errors import AnalysisError
from services.risk_review.services.analysis import (
    MONITORING_RECOMMENDATION,
    PROMPT_VERSION,
    SYSTEM_PROMPT,
    GovernanceRecommendation,
    LLMNarrativeAnalyzer,
    Tier,
    build_fallback_analysis,
    build_prompt,
    parse_analysis,
)
from services.risk_review.services.risk_rules import RiskScorer, RiskScores
from tests.conftest import FakeLLMProvider


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def low_scores(sample_submission_data: dict[str, Any]) -> RiskScores:
    return RiskScorer().score(SubmissionFields(**sample_submission_data))


@pytest.fixture
def critical_scores(high_risk_submission_data: dict[str, Any]) -> RiskScores:
    return RiskScorer().score(SubmissionFields(**high_risk_submission_data))


@pytest.fixture
def structured_response() -> dict[str, Any]:
    """Structured assessment as the model returns it."""
    return {
        "assessmentMetadata": {
            "systemName": "Contract Summarizer",
            "assessmentDate": "2024-05-01",
            "promptVersion": PROMPT_VERSION,
            "overallRiskTier": "High",
            "ruleBasedOverallLevel": "MEDIUM",
            "tierAdjusted": True,
            "tierAdjustmentReason": "PII handled without logging",
        },
        "domainScores": [
            {
                "domain": "Data & Privacy",
                "ruleBasedScore": 39,
                "agentAssessedTier": "High",
                "keyFinding": "PII stored persistently",
                "nistAiRmfFunction": "MAP",
                "assessmentRationale": "Vendor retains prompts",
            }
        ],
        "vendorRisk": {
            "ruleBasedScore": 10,
            "agentAssessedTier": "Moderate",
            "thirdPartyModelsIdentified": "Claude",
            "vendorDocumentationProvided": False,
            "keyFinding": "No DPA on file",
        },
        "findings": [
            {
                "id": "F-001",
                "title": "No usage logging",
                "description": "Prompts and outputs are not logged",
                "affectedDomain": "Compliance & Monitoring",
                "severity": "High",
                "nistSp80053ControlFamily": "AU",
                "evidenceSummary": "usage_logging_enabled=false",
            }
        ],
        "recommendations": [
            {
                "id": "R-001",
                "relatedFindings": ["F-001"],
                "action": "Enable usage logging",
                "owner": "IT Operations",
                "type": "Blocking",
                "effort": "Low",
            }
        ],
        "governanceDecision": {
            "recommendation": "Conditionally Approve",
            "rationale": "Approve once logging is enabled.",
            "blockingItemCount": 1,
            "advisoryItemCount": 0,
            "nextReviewDate": "2024-11-01",
        },
        "executiveSummary": "The system is usable once logging is in place.",
        "riskFlags": {"carriedForward": [], "newlyIdentified": ["No DPA on file"]},
    }


# =============================================================================
# Parsing
# =============================================================================


class TestParseAnalysis:
    def test_legacy_shape(self) -> None:
        narrative = parse_analysis(
            {"summary": "Looks fine", "recommendations": ["Do X"], "explanation": "Because"}
        )

        assert narrative.summary == "Looks fine"
        assert narrative.recommendations == ["Do X"]
        assert narrative.explanation == "Because"
        assert narrative.full_assessment is None
        assert not narrative.fallback

    def test_structured_shape(self, structured_response: dict[str, Any]) -> None:
        narrative = parse_analysis(structured_response)

        assert narrative.summary == "The system is usable once logging is in place."
        assert narrative.recommendations == [
            "[Blocking] Enable usage logging (Owner: IT Operations, Effort: Low)"
        ]
        full = narrative.full_assessment
        assert full is not None
        assert full.assessment_metadata.overall_risk_tier == Tier.HIGH
        assert full.governance_decision.recommendation == GovernanceRecommendation.CONDITIONALLY_APPROVE

    def test_structured_explanation(self, structured_response: dict[str, Any]) -> None:
        explanation = parse_analysis(structured_response).explanation

        assert explanation.startswith(f"## Risk Assessment Summary ({PROMPT_VERSION})")
        assert "### Overall Assessment: High" in explanation
        assert "> **Tier Adjustment:** PII handled without logging" in explanation
        assert "| Data & Privacy | High | PII stored persistently |" in explanation
        assert "| Vendor Risk | Moderate | No DPA on file |" in explanation
        assert "#### F-001: No usage logging" in explanation
        assert "- **NIST Control:** AU" in explanation
        assert "**Recommendation:** Conditionally Approve" in explanation
        assert "- No DPA on file" in explanation

    def test_missing_executive_summary(self, structured_response: dict[str, Any]) -> None:
        del structured_response["executiveSummary"]

        assert parse_analysis(structured_response).summary == "Risk assessment completed."

    def test_invalid_structured_shape(self, structured_response: dict[str, Any]) -> None:
        structured_response["governanceDecision"]["recommendation"] = "Maybe"

        with pytest.raises(AnalysisError):
            parse_analysis(structured_response)

    def test_unrecognised_shape(self) -> None:
        with pytest.raises(AnalysisError):
            parse_analysis({"verdict": "ok"})

    @pytest.mark.parametrize(
        "summary,explanation",
        [("", "Because"), ("Looks fine", ""), ("   ", "Because"), ("Looks fine", "\n\t")],
    )
    def test_blank_legacy_fields_are_rejected(self, summary: str, explanation: str) -> None:
        with pytest.raises(AnalysisError):
            parse_analysis({"summary": summary, "recommendations": [], "explanation": explanation})

    def test_blank_executive_summary(self, structured_response: dict[str, Any]) -> None:
        structured_response["executiveSummary"] = "  "

        assert parse_analysis(structured_response).summary == "Risk assessment completed."


# =============================================================================
# Fallback
# =============================================================================


class TestFallbackAnalysis:
    def test_low_risk_fallback(self, low_scores: RiskScores) -> None:
        narrative = build_fallback_analysis(low_scores)

        assert narrative.fallback
        assert narrative.summary.startswith("This AI system has been assessed as LOW risk.")
        assert narrative.recommendations == [MONITORING_RECOMMENDATION]
        assert "No significant risk factors identified." in narrative.explanation
        assert "| Data Privacy | 3/100 | Low |" in narrative.explanation
        assert "The AI-powered analysis was unavailable." in narrative.explanation

    def test_critical_fallback(self, critical_scores: RiskScores) -> None:
        narrative = build_fallback_analysis(critical_scores)

        assert narrative.summary.startswith(
            f"This AI system has been assessed as CRITICAL risk. {len(critical_scores.risk_flags)} risk factors"
        )
        assert [rec.split("]")[0] for rec in narrative.recommendations] == [
            "[Blocking",
            "[Blocking",
            "[Advisory",
            "[Blocking",
        ]
        assert "### Identified Risk Factors" in narrative.explanation
        assert "- Handles protected health information (PHI)" in narrative.explanation
        assert "| Human Oversight | 90/100 | High |" in narrative.explanation

    def test_recommendation_threshold_is_strict(self) -> None:
        """Test a category at exactly 50 does not trigger its recommendation."""
        scores = RiskScores(
            data_privacy_score=50,
            oversight_score=51,
            compliance_score=0,
            vendor_score=0,
            overall_score=30,
            overall_level=RiskScorer().risk_level(30),
            risk_flags=["flag"],
        )

        narrative = build_fallback_analysis(scores)

        assert len(narrative.recommendations) == 1
        assert "human oversight" in narrative.recommendations[0]
        assert narrative.summary.startswith("This AI system has been assessed as MEDIUM risk.")

    def test_fallback_is_deterministic(self, critical_scores: RiskScores) -> None:
        assert build_fallback_analysis(critical_scores) == build_fallback_analysis(critical_scores)


# =============================================================================
# LLM Analyzer
# =============================================================================


class TestLLMNarrativeAnalyzer:
    def test_prompt_carries_scores_and_flags(self, critical_scores: RiskScores) -> None:
        prompt = build_prompt({"ai_system_name": "Triage Bot"}, critical_scores)

        assert '"ai_system_name": "Triage Bot"' in prompt
        assert "Human Oversight Risk: 90/100" in prompt
        assert "- Handles protected health information (PHI)" in prompt
        assert f'promptVersion ("{PROMPT_VERSION}")' in prompt

    @pytest.mark.asyncio
    async def test_parses_wrapped_json(self, low_scores: RiskScores) -> None:
        body = json.dumps({"summary": "S", "recommendations": [], "explanation": "E"})
        provider = FakeLLMProvider(content=f"Here is the assessment:\n```json\n{body}\n```")
        analyzer = LLMNarrativeAnalyzer(provider=provider, max_tokens=100)

        narrative = await analyzer.analyze({"ai_system_name": "Bot"}, low_scores)

        assert narrative.summary == "S"
        messages = provider.calls[0]
        assert messages[0].to_dict() == {"role": "system", "content": SYSTEM_PROMPT}
        assert messages[1].to_dict()["role"] == "user"

    @pytest.mark.asyncio
    async def test_structured_response(
        self, low_scores: RiskScores, structured_response: dict[str, Any]
    ) -> None:
        provider = FakeLLMProvider(content=json.dumps(structured_response))

        narrative = await LLMNarrativeAnalyzer(provider=provider).analyze({}, low_scores)

        assert narrative.full_assessment is not None

    @pytest.mark.asyncio
    async def test_provider_error_becomes_analysis_error(self, low_scores: RiskScores) -> None:
        provider = FakeLLMProvider(error=ConnectionError("down"))

        with pytest.raises(AnalysisError, match="down"):
            await LLMNarrativeAnalyzer(provider=provider).analyze({}, low_scores)

    @pytest.mark.asyncio
    async def test_non_json_output(self, low_scores: RiskScores) -> None:
        provider = FakeLLMProvider(content="I cannot help with that.")

        with pytest.raises(AnalysisError):
            await LLMNarrativeAnalyzer(provider=provider).analyze({}, low_scores)
