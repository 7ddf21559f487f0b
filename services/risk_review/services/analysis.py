"""
Narrative Analysis Service
==========================

Turns rule-based scores into a governance narrative.

The LLM analyzer asks the configured provider for a structured
assessment (NIST AI RMF domains, findings, recommendations, governance
decision) and renders it into the stored summary / recommendations /
explanation triple. When no narrative can be produced the caller falls
back to ``build_fallback_analysis``, which derives the same triple from
the scores alone.

Version: 0.1.0
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.config import settings
from shared.llm import LLMProvider, extract_json_object, get_llm_provider
from shared.logging import get_logger
from services.risk_review.errors import AnalysisError
from services.risk_review.services.risk_rules import RiskScores, category_label


logger = get_logger(__name__)

PROMPT_VERSION = "v1.2"


@dataclass
class NarrativeAnalysis:
    """Narrative part of a stored assessment."""

    summary: str
    recommendations: list[str] = field(default_factory=list)
    explanation: str = ""
    full_assessment: "FullAssessment | None" = None
    fallback: bool = False


# =============================================================================
# Structured Assessment Shape
# =============================================================================


class Tier(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"


class GovernanceRecommendation(str, Enum):
    APPROVE = "Approve"
    CONDITIONALLY_APPROVE = "Conditionally Approve"
    REJECT = "Reject"
    ESCALATE = "Escalate to Governance Board"


class _Shape(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AssessmentMetadata(_Shape):
    system_name: str = Field("", alias="systemName")
    assessment_date: str = Field("", alias="assessmentDate")
    prompt_version: str = Field(PROMPT_VERSION, alias="promptVersion")
    overall_risk_tier: Tier = Field(..., alias="overallRiskTier")
    rule_based_overall_level: str = Field("", alias="ruleBasedOverallLevel")
    tier_adjusted: bool = Field(False, alias="tierAdjusted")
    tier_adjustment_reason: str = Field("N/A", alias="tierAdjustmentReason")


class DomainScore(_Shape):
    domain: str
    rule_based_score: int | None = Field(None, alias="ruleBasedScore")
    agent_assessed_tier: Tier = Field(..., alias="agentAssessedTier")
    key_finding: str = Field("", alias="keyFinding")
    nist_ai_rmf_function: str = Field("", alias="nistAiRmfFunction")
    assessment_rationale: str = Field("", alias="assessmentRationale")
    score_adjustment_reason: str | None = Field(None, alias="scoreAdjustmentReason")


class VendorRisk(_Shape):
    rule_based_score: int | None = Field(None, alias="ruleBasedScore")
    agent_assessed_tier: Tier = Field(..., alias="agentAssessedTier")
    third_party_models_identified: str = Field("", alias="thirdPartyModelsIdentified")
    vendor_documentation_provided: bool = Field(False, alias="vendorDocumentationProvided")
    key_finding: str = Field("", alias="keyFinding")
    assessment_rationale: str = Field("", alias="assessmentRationale")


class Finding(_Shape):
    id: str
    title: str
    description: str = ""
    affected_domain: str = Field("", alias="affectedDomain")
    severity: Tier
    nist_ai_rmf_function: str = Field("", alias="nistAiRmfFunction")
    nist_sp_800_53_control_family: str = Field("N/A", alias="nistSp80053ControlFamily")
    source_field: str = Field("", alias="sourceField")
    evidence_summary: str = Field("", alias="evidenceSummary")


class Recommendation(_Shape):
    id: str = ""
    related_findings: list[str] = Field(default_factory=list, alias="relatedFindings")
    action: str
    owner: str
    type: str
    effort: str
    effort_definition: str = Field("", alias="effortDefinition")
    rationale: str = ""


class GovernanceDecision(_Shape):
    recommendation: GovernanceRecommendation
    rationale: str = ""
    blocking_item_count: int = Field(0, alias="blockingItemCount")
    advisory_item_count: int = Field(0, alias="advisoryItemCount")
    next_review_date: str = Field("", alias="nextReviewDate")
    escalation_triggers: str = Field("", alias="escalationTriggers")


class RiskFlagReview(_Shape):
    carried_forward: list[str] = Field(default_factory=list, alias="carriedForward")
    newly_identified: list[str] = Field(default_factory=list, alias="newlyIdentified")


class FullAssessment(_Shape):
    """Structured assessment returned by the model."""

    assessment_metadata: AssessmentMetadata = Field(..., alias="assessmentMetadata")
    domain_scores: list[DomainScore] = Field(default_factory=list, alias="domainScores")
    vendor_risk: VendorRisk = Field(..., alias="vendorRisk")
    findings: list[Finding] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    governance_decision: GovernanceDecision = Field(..., alias="governanceDecision")
    executive_summary: str | None = Field(None, alias="executiveSummary")
    risk_flags: RiskFlagReview = Field(default_factory=RiskFlagReview, alias="riskFlags")


class LegacyAnalysis(_Shape):
    """Older flat response shape."""

    summary: str
    recommendations: list[str] = Field(default_factory=list)
    explanation: str

    @field_validator("summary", "explanation")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


# =============================================================================
# Rendering
# =============================================================================


def format_recommendation(rec: Recommendation) -> str:
    return f"[{rec.type}] {rec.action} (Owner: {rec.owner}, Effort: {rec.effort})"


def build_explanation(full: FullAssessment) -> str:
    """Render a structured assessment as markdown."""
    meta = full.assessment_metadata
    lines = [
        f"## Risk Assessment Summary ({meta.prompt_version})",
        "",
        f"### Overall Assessment: {meta.overall_risk_tier.value}",
        "",
    ]

    if meta.tier_adjusted:
        lines += [f"> **Tier Adjustment:** {meta.tier_adjustment_reason}", ""]

    lines += [
        "### Domain Analysis",
        "",
        "| Domain | Tier | Key Finding |",
        "|--------|------|-------------|",
    ]
    for domain in full.domain_scores:
        lines.append(f"| {domain.domain} | {domain.agent_assessed_tier.value} | {domain.key_finding} |")
    vendor = full.vendor_risk
    lines += [f"| Vendor Risk | {vendor.agent_assessed_tier.value} | {vendor.key_finding} |", ""]

    if full.findings:
        lines += ["### Findings", ""]
        for finding in full.findings:
            lines += [
                f"#### {finding.id}: {finding.title}",
                f"- **Severity:** {finding.severity.value}",
                f"- **Domain:** {finding.affected_domain}",
                f"- **NIST Control:** {finding.nist_sp_800_53_control_family}",
                f"- **Description:** {finding.description}",
                f"- **Evidence:** {finding.evidence_summary}",
                "",
            ]

    decision = full.governance_decision
    lines += [
        "### Governance Decision",
        "",
        f"**Recommendation:** {decision.recommendation.value}",
        "",
        decision.rationale,
        "",
        f"- Blocking Items: {decision.blocking_item_count}",
        f"- Advisory Items: {decision.advisory_item_count}",
        f"- Next Review: {decision.next_review_date}",
        "",
    ]

    if full.risk_flags.newly_identified:
        lines += ["### Newly Identified Risk Flags", ""]
        lines += [f"- {flag}" for flag in full.risk_flags.newly_identified]

    return "\n".join(lines).rstrip() + "\n"


def normalize_full_assessment(full: FullAssessment) -> NarrativeAnalysis:
    """Flatten a structured assessment into the stored narrative fields."""
    return NarrativeAnalysis(
        summary=(full.executive_summary or "").strip() or "Risk assessment completed.",
        recommendations=[format_recommendation(rec) for rec in full.recommendations],
        explanation=build_explanation(full),
        full_assessment=full,
    )


def parse_analysis(data: dict[str, Any]) -> NarrativeAnalysis:
    """
    Validate model output against the structured shape, then the legacy one.

    Raises:
        AnalysisError: Neither shape matches.
    """
    if "assessmentMetadata" in data or "assessment_metadata" in data:
        try:
            return normalize_full_assessment(FullAssessment.model_validate(data))
        except ValidationError as e:
            raise AnalysisError(f"Structured assessment failed validation: {e}") from e

    try:
        legacy = LegacyAnalysis.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(f"Analysis response has an unrecognised shape: {e}") from e
    return NarrativeAnalysis(
        summary=legacy.summary,
        recommendations=legacy.recommendations,
        explanation=legacy.explanation,
    )


# =============================================================================
# Fallback
# =============================================================================


FALLBACK_RECOMMENDATIONS: tuple[tuple[str, str], ...] = (
    (
        "data_privacy",
        "[Blocking] Conduct a data privacy impact assessment and ensure appropriate "
        "data handling controls (Owner: Privacy Office, Effort: Medium)",
    ),
    (
        "oversight",
        "[Blocking] Implement stronger human oversight controls before AI outputs "
        "are acted upon (Owner: System Owner, Effort: Medium)",
    ),
    (
        "compliance",
        "[Advisory] Review compliance requirements and ensure proper documentation "
        "and audit trails (Owner: Governance Board, Effort: High)",
    ),
    (
        "vendor",
        "[Blocking] Conduct vendor due diligence and establish clear data handling "
        "agreements (Owner: Security Team, Effort: Medium)",
    ),
)

MONITORING_RECOMMENDATION = (
    "[Advisory] Continue monitoring system usage and update this assessment "
    "periodically (Owner: System Owner, Effort: Low)"
)

CATEGORY_TITLES: dict[str, str] = {
    "data_privacy": "Data Privacy",
    "oversight": "Human Oversight",
    "compliance": "Compliance",
    "vendor": "Vendor",
}

# Category score above which a remediation recommendation is issued
RECOMMENDATION_THRESHOLD = 50


def _fallback_summary(scores: RiskScores) -> str:
    level = scores.overall_level.value
    count = len(scores.risk_flags)
    if level in ("CRITICAL", "HIGH"):
        return (
            f"This AI system has been assessed as {level} risk. {count} risk factors were "
            "identified that require immediate attention. Review the recommendations below "
            "before proceeding."
        )
    if level == "MEDIUM":
        return (
            f"This AI system has been assessed as MEDIUM risk. While not critical, {count} "
            "areas of concern were identified that should be addressed."
        )
    return (
        "This AI system has been assessed as LOW risk. The system appears to have "
        "appropriate controls in place, though continuous monitoring is recommended."
    )


def _fallback_explanation(scores: RiskScores) -> str:
    if scores.risk_flags:
        flag_section = "### Identified Risk Factors\n" + "\n".join(
            f"- {flag}" for flag in scores.risk_flags
        )
    else:
        flag_section = "No significant risk factors identified."

    rows = "\n".join(
        f"| {CATEGORY_TITLES[name]} | {score}/100 | {category_label(score)} |"
        for name, score in scores.category_scores().items()
    )

    return (
        "## Risk Assessment Summary (Fallback Analysis)\n\n"
        f"### Overall Assessment: {scores.overall_level.value}\n\n"
        f"{flag_section}\n\n"
        "### Category Breakdown\n\n"
        "| Category | Score | Level |\n"
        "|----------|-------|-------|\n"
        f"{rows}\n\n"
        "### Next Steps\n\n"
        "Review the recommendations provided and address any high-risk areas before "
        "expanding use of this AI system.\n\n"
        "*Note: This is a fallback analysis generated from rule-based scoring. "
        "The AI-powered analysis was unavailable.*"
    )


def build_fallback_analysis(scores: RiskScores) -> NarrativeAnalysis:
    """Deterministic narrative derived from the scores alone."""
    category_scores = scores.category_scores()
    recommendations = [
        text
        for category, text in FALLBACK_RECOMMENDATIONS
        if category_scores[category] > RECOMMENDATION_THRESHOLD
    ]
    if not recommendations:
        recommendations = [MONITORING_RECOMMENDATION]

    return NarrativeAnalysis(
        summary=_fallback_summary(scores),
        recommendations=recommendations,
        explanation=_fallback_explanation(scores),
        fallback=True,
    )


# =============================================================================
# Analyzers
# =============================================================================


class NarrativeAnalyzer(ABC):
    """Produces the narrative for a scored submission."""

    @abstractmethod
    async def analyze(
        self,
        submission_data: dict[str, Any],
        scores: RiskScores,
    ) -> NarrativeAnalysis:
        """
        Raises:
            AnalysisError: The narrative could not be produced.
        """
        ...


SYSTEM_PROMPT = (
    f"You are an AI Risk Assessment Agent ({PROMPT_VERSION}) in an enterprise AI governance "
    "platform. You evaluate AI system intake submissions against the NIST AI Risk Management "
    "Framework and NIST SP 800-53 control families. You surface risk accurately so human "
    "decision-makers can act. You are not a legal advisor. When uncertain between two risk "
    "tiers, choose the higher one. Treat empty, unknown or vague fields as risk findings. "
    "Respond ONLY with a single valid JSON object."
)


def build_prompt(submission_data: dict[str, Any], scores: RiskScores) -> str:
    """User prompt carrying the submission and its rule-based scores."""
    flags = "\n".join(f"- {flag}" for flag in scores.risk_flags) or "- None"
    return f"""SUBMISSION DATA
{json.dumps(submission_data, indent=2, default=str)}

RULE-BASED RISK SCORES
- Data Privacy Risk: {scores.data_privacy_score}/100
- Human Oversight Risk: {scores.oversight_score}/100
- Compliance Risk: {scores.compliance_score}/100
- Vendor Risk: {scores.vendor_score}/100
- Overall Risk Level: {scores.overall_level.value}

IDENTIFIED RISK FLAGS
{flags}

Score bands: 0-25 Low, 26-50 Moderate, 51-75 High, 76-100 Critical. The highest
applicable domain tier wins. If scores and submission data conflict, flag the
conflict and take the more conservative reading.

Analyse the five intake domains (Basic Information, Human Oversight, Data & Privacy,
Ownership & Accountability, Compliance & Monitoring) plus vendor risk, then respond
with a JSON object containing:
- assessmentMetadata: systemName, assessmentDate, promptVersion ("{PROMPT_VERSION}"),
  overallRiskTier (Critical|High|Moderate|Low), ruleBasedOverallLevel, tierAdjusted,
  tierAdjustmentReason
- domainScores: list of domain, ruleBasedScore (or null), agentAssessedTier, keyFinding,
  nistAiRmfFunction, assessmentRationale, scoreAdjustmentReason
- vendorRisk: ruleBasedScore, agentAssessedTier, thirdPartyModelsIdentified,
  vendorDocumentationProvided, keyFinding, assessmentRationale
- findings: list of id, title, description, affectedDomain, severity, nistAiRmfFunction,
  nistSp80053ControlFamily, sourceField, evidenceSummary
- recommendations: list of id, relatedFindings, action, owner, type (Blocking|Advisory),
  effort (Low|Medium|High), effortDefinition, rationale
- governanceDecision: recommendation (Approve|Conditionally Approve|Reject|Escalate to
  Governance Board), rationale, blockingItemCount, advisoryItemCount, nextReviewDate,
  escalationTriggers
- executiveSummary: 2-3 sentences for a non-technical executive
- riskFlags: carriedForward, newlyIdentified
"""


class LLMNarrativeAnalyzer(NarrativeAnalyzer):
    """
    Narrative analyzer backed by an LLM provider.

    Example:
        >>> analyzer = LLMNarrativeAnalyzer()
        >>> narrative = await analyzer.analyze(fields, scores)
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._provider = provider
        self.max_tokens = max_tokens or settings.analysis.max_tokens

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    async def analyze(
        self,
        submission_data: dict[str, Any],
        scores: RiskScores,
    ) -> NarrativeAnalysis:
        try:
            text = await self.provider.generate_text(
                build_prompt(submission_data, scores),
                system_prompt=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise AnalysisError(f"Narrative request failed: {e}") from e

        try:
            data = extract_json_object(text)
        except ValueError as e:
            raise AnalysisError(f"Could not parse model output as JSON: {e}") from e

        narrative = parse_analysis(data)
        logger.info(
            "narrative_generated",
            provider=self.provider.name,
            structured=narrative.full_assessment is not None,
            recommendations=len(narrative.recommendations),
        )
        return narrative
