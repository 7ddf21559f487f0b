"""
Risk Rule Scorer
================

Deterministic rule-based scoring of AI system submissions.

Four categories are scored independently on a 0-100 scale:
- Data privacy: sensitive data types, vendor retention, user training
- Human oversight: how outputs are used and reviewed
- Compliance: federal obligations and monitoring controls
- Vendor: vendor maturity, deployment stage, user base

The overall score is the weighted sum of the four, and maps onto a
LOW / MEDIUM / HIGH / CRITICAL level.

Version: 0.1.0
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from shared.models.assessment import RiskLevel
from shared.models.submission import SubmissionFields


# (points, flag) pair; a None flag scores silently
Rule = tuple[int, str | None]


def _frozen(mapping: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(mapping)


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    """Clamp to [low, high]."""
    return min(max(value, low), high)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


# =============================================================================
# Scoring Policy
# =============================================================================


@dataclass(frozen=True)
class ScoringPolicy:
    """
    Immutable rule tables for the scorer.

    Pass an alternate instance to RiskScorer to score under a different
    policy without touching module state.
    """

    weights: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {
                "data_privacy": 0.35,
                "oversight": 0.25,
                "compliance": 0.25,
                "vendor": 0.15,
            }
        )
    )

    # Ordered: flags are emitted in this order
    data_type_rules: tuple[tuple[str, int, str | None], ...] = (
        ("health", 40, "Handles protected health information (PHI)"),
        ("pii", 30, "Processes personally identifiable information (PII)"),
        ("financial", 25, "Accesses financial data"),
        ("customer", 15, "Uses customer data"),
        ("employee", 10, "Processes employee data"),
        ("business_strategy", 5, None),
        ("internal_docs", 3, None),
    )

    storage_multipliers: Mapping[str, tuple[float, str]] = field(
        default_factory=lambda: _frozen(
            {
                "persistent": (1.3, "Vendor stores data persistently"),
                "unknown": (1.5, "Vendor data storage policy is unknown"),
            }
        )
    )

    training_penalty: Rule = (
        10,
        "No user training required despite handling sensitive data",
    )

    output_usage_rules: Mapping[str, Rule] = field(
        default_factory=lambda: _frozen(
            {
                "direct_action": (45, "AI output used for direct action without review"),
                "automated_with_oversight": (25, None),
                "advisory_only": (10, None),
                "human_review_required": (5, None),
            }
        )
    )

    human_review_rules: Mapping[str, Rule] = field(
        default_factory=lambda: _frozen(
            {
                "none": (45, "No human review of AI outputs"),
                "spot_check": (30, "Only spot-check review of outputs"),
                "review_before_critical": (15, None),
                "always_reviewed": (5, None),
            }
        )
    )

    federal_contract_rules: Mapping[str, Rule] = field(
        default_factory=lambda: _frozen(
            {
                "yes": (40, "Federal contracts require FedRAMP/FISMA compliance"),
                "unknown": (20, "Federal contract status unknown - potential compliance gap"),
                "no": (0, None),
            }
        )
    )

    # Applied when the named control is switched off
    missing_control_rules: tuple[tuple[str, int, str], ...] = (
        ("usage_logging_enabled", 20, "Usage logging not enabled - audit trail missing"),
        ("compliance_access", 15, "Compliance team lacks access to system"),
        ("incident_response_doc", 15, "No incident response documentation"),
        ("acceptable_use_required", 10, "No acceptable use agreement required"),
    )

    established_vendors: frozenset[str] = frozenset(
        {"openai", "anthropic", "google", "microsoft", "amazon"}
    )
    unestablished_vendor_penalty: Rule = (
        25,
        "Using non-major AI vendor - may need additional due diligence",
    )

    stage_rules: Mapping[str, Rule] = field(
        default_factory=lambda: _frozen(
            {
                "production": (20, "System is in production - changes require careful rollout"),
                "testing": (10, None),
                "development": (5, None),
                "evaluation": (0, None),
            }
        )
    )

    user_count_rules: Mapping[str, Rule] = field(
        default_factory=lambda: _frozen(
            {
                "1000+": (25, "Large user base (1000+) increases impact of issues"),
                "201-1000": (15, None),
                "51-200": (10, None),
                "11-50": (5, None),
                "1-10": (0, None),
            }
        )
    )

    # Vendor-side term, independent of the data privacy multiplier
    unknown_storage_vendor_points: int = 20

    # Inclusive lower bounds, highest first
    level_thresholds: tuple[tuple[int, RiskLevel], ...] = (
        (75, RiskLevel.CRITICAL),
        (50, RiskLevel.HIGH),
        (25, RiskLevel.MEDIUM),
    )


DEFAULT_SCORING_POLICY = ScoringPolicy()

NO_CONTRIBUTION: Rule = (0, None)


# =============================================================================
# Results
# =============================================================================


@dataclass
class CategoryScore:
    """Score and flags for one risk category."""

    score: int
    flags: list[str] = field(default_factory=list)


@dataclass
class RiskScores:
    """Rule-based scores for a submission. Recomputed on demand, never stored on its own."""

    data_privacy_score: int
    oversight_score: int
    compliance_score: int
    vendor_score: int
    overall_score: int
    overall_level: RiskLevel
    risk_flags: list[str] = field(default_factory=list)

    def category_scores(self) -> dict[str, int]:
        """The four category scores keyed by category name."""
        return {
            "data_privacy": self.data_privacy_score,
            "oversight": self.oversight_score,
            "compliance": self.compliance_score,
            "vendor": self.vendor_score,
        }

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            **{f"{name}_score": score for name, score in self.category_scores().items()},
            "overall_score": self.overall_score,
            "overall_level": self.overall_level.value,
            "risk_flags": list(self.risk_flags),
        }


# =============================================================================
# Scorer
# =============================================================================


class RiskScorer:
    """
    Rule-based risk scorer.

    Pure and total: never raises on missing fields, and the same
    submission always yields the same scores and flag order.
    """

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or DEFAULT_SCORING_POLICY

    def score(self, submission: SubmissionFields) -> RiskScores:
        """Score a submission across all four categories."""
        data_privacy = self.score_data_privacy(submission)
        oversight = self.score_oversight(submission)
        compliance = self.score_compliance(submission)
        vendor = self.score_vendor(submission)

        weights = self.policy.weights
        weighted = (
            data_privacy.score * weights["data_privacy"]
            + oversight.score * weights["oversight"]
            + compliance.score * weights["compliance"]
            + vendor.score * weights["vendor"]
        )
        overall = clamp(round_half_up(weighted))

        return RiskScores(
            data_privacy_score=data_privacy.score,
            oversight_score=oversight.score,
            compliance_score=compliance.score,
            vendor_score=vendor.score,
            overall_score=overall,
            overall_level=self.risk_level(overall),
            risk_flags=[
                *data_privacy.flags,
                *oversight.flags,
                *compliance.flags,
                *vendor.flags,
            ],
        )

    def risk_level(self, score: int) -> RiskLevel:
        """Map an overall score onto its risk level."""
        for threshold, level in self.policy.level_thresholds:
            if score >= threshold:
                return level
        return RiskLevel.LOW

    def score_data_privacy(self, submission: SubmissionFields) -> CategoryScore:
        """Sensitive data types, scaled by how the vendor retains them."""
        data_types = set(submission.data_types or [])
        score = 0
        flags: list[str] = []

        for data_type, points, flag in self.policy.data_type_rules:
            if data_type in data_types:
                score += points
                if flag:
                    flags.append(flag)

        multiplier = self.policy.storage_multipliers.get(submission.vendor_data_storage or "")
        if multiplier is not None:
            factor, flag = multiplier
            score = round_half_up(score * factor)
            flags.append(flag)

        if not submission.user_training_required and data_types:
            points, flag = self.policy.training_penalty
            score += points
            if flag:
                flags.append(flag)

        return CategoryScore(clamp(score), flags)

    def score_oversight(self, submission: SubmissionFields) -> CategoryScore:
        """Output usage and human review level."""
        result = CategoryScore(0)
        self._apply(result, self.policy.output_usage_rules, submission.output_usage)
        self._apply(result, self.policy.human_review_rules, submission.human_review_level)
        result.score = clamp(result.score)
        return result

    def score_compliance(self, submission: SubmissionFields) -> CategoryScore:
        """Federal obligations plus one penalty per missing control."""
        result = CategoryScore(0)
        self._apply(result, self.policy.federal_contract_rules, submission.has_federal_contracts)

        for attribute, points, flag in self.policy.missing_control_rules:
            if not getattr(submission, attribute, False):
                result.score += points
                result.flags.append(flag)

        result.score = clamp(result.score)
        return result

    def score_vendor(self, submission: SubmissionFields) -> CategoryScore:
        """Vendor maturity, deployment stage and size of the user base."""
        result = CategoryScore(0)

        vendor = (submission.vendor or "").lower()
        if vendor and vendor not in self.policy.established_vendors:
            points, flag = self.policy.unestablished_vendor_penalty
            result.score += points
            if flag:
                result.flags.append(flag)

        self._apply(result, self.policy.stage_rules, submission.current_stage)
        self._apply(result, self.policy.user_count_rules, submission.number_of_users)

        if submission.vendor_data_storage == "unknown":
            result.score += self.policy.unknown_storage_vendor_points

        result.score = clamp(result.score)
        return result

    @staticmethod
    def _apply(result: CategoryScore, rules: Mapping[str, Rule], value: str | None) -> None:
        """Add the rule matching ``value``; unmatched or missing values contribute nothing."""
        points, flag = rules.get(value or "", NO_CONTRIBUTION)
        result.score += points
        if flag:
            result.flags.append(flag)


def category_label(score: int) -> str:
    """Coarse per-category label used in narrative tables."""
    if score >= 50:
        return "High"
    if score >= 25:
        return "Medium"
    return "Low"


def calculate_risk_scores(submission: SubmissionFields) -> RiskScores:
    """Score a submission under the default policy."""
    return RiskScorer().score(submission)


def risk_level_for_score(score: int) -> RiskLevel:
    """Map an overall score onto its risk level under the default policy."""
    return RiskScorer().risk_level(score)
