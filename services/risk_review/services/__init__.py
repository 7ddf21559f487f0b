"""
Risk Review Business Logic
==========================

Core services for the AI governance review workflow.

Services:
- RiskScorer: Rule-based risk scoring
- WorkflowConfig: SLA, priority and escalation policy
- SLACalculator: SLA status, escalation and queue ordering
- LLMNarrativeAnalyzer: Governance narrative with deterministic fallback
- RiskAssessmentService: Scoring + narrative + storage orchestration
- ReviewService: Submission lifecycle and reviewer workflow
- AuditService / NotificationService: Audit trail and outbound notices
"""

from services.risk_review.services.analysis import (
    LLMNarrativeAnalyzer,
    NarrativeAnalysis,
    NarrativeAnalyzer,
    build_fallback_analysis,
)
from services.risk_review.services.assessment import (
    RiskAssessmentResult,
    RiskAssessmentService,
)
from services.risk_review.services.audit import AuditService
from services.risk_review.services.notifications import (
    LogNotifier,
    NotificationService,
    Notifier,
    WebhookNotifier,
    create_notifier,
)
from services.risk_review.services.review import (
    ReviewService,
    SubmissionWorkflow,
    WorkflowAction,
)
from services.risk_review.services.risk_rules import (
    RiskScorer,
    RiskScores,
    ScoringPolicy,
    calculate_risk_scores,
)
from services.risk_review.services.sla import (
    EscalationDecision,
    SLACalculator,
    SLAInfo,
    SLAStatus,
)
from services.risk_review.services.workflow import (
    DEFAULT_WORKFLOW_CONFIG,
    WorkflowConfig,
)

__all__ = [
    # Scoring
    "RiskScorer",
    "RiskScores",
    "ScoringPolicy",
    "calculate_risk_scores",
    # Workflow / SLA
    "WorkflowConfig",
    "DEFAULT_WORKFLOW_CONFIG",
    "SLACalculator",
    "SLAInfo",
    "SLAStatus",
    "EscalationDecision",
    # Analysis
    "NarrativeAnalyzer",
    "NarrativeAnalysis",
    "LLMNarrativeAnalyzer",
    "build_fallback_analysis",
    # Orchestration
    "RiskAssessmentService",
    "RiskAssessmentResult",
    "ReviewService",
    "SubmissionWorkflow",
    "WorkflowAction",
    # Sinks
    "AuditService",
    "NotificationService",
    "Notifier",
    "LogNotifier",
    "WebhookNotifier",
    "create_notifier",
]
