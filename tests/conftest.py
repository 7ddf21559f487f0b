"""
Test Configuration
==================

Pytest fixtures for the risk review tests.
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ["NOTIFY_WEBHOOK_URL"] = ""

from shared.llm import LLMMessage, LLMProvider, LLMResponse  # noqa: E402
from shared.models import SubmissionCreate  # noqa: E402
from services.risk_review.services.analysis import NarrativeAnalysis, NarrativeAnalyzer  # noqa: E402
from services.risk_review.services.assessment import RiskAssessmentService  # noqa: E402
from services.risk_review.services.audit import AuditService  # noqa: E402
from services.risk_review.services.notifications import Notifier, NotificationService  # noqa: E402
from services.risk_review.services.review import ReviewService  # noqa: E402
from services.risk_review.services.risk_rules import RiskScores  # noqa: E402
from services.risk_review.store import InMemorySubmissionStore  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================


class FakeLLMProvider(LLMProvider):
    """Provider that returns canned text, or raises."""

    def __init__(self, content: str = "{}", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[list[LLMMessage]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-model"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop_sequences: list[str] | None = None,
    ) -> LLMResponse:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content, model=self.model, provider=self.name)

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "provider": self.name}


class StaticAnalyzer(NarrativeAnalyzer):
    """Analyzer that returns a fixed narrative."""

    def __init__(self, summary: str = "Model summary") -> None:
        self.summary = summary
        self.calls = 0

    async def analyze(self, submission_data: dict[str, Any], scores: RiskScores) -> NarrativeAnalysis:
        self.calls += 1
        return NarrativeAnalysis(
            summary=self.summary,
            recommendations=["[Advisory] Keep monitoring (Owner: System Owner, Effort: Low)"],
            explanation="## Model explanation\n",
        )


class RecordingNotifier(Notifier):
    """Notifier that keeps every event."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("notifier down")
        self.events.append((event, payload))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def store() -> InMemorySubmissionStore:
    """Fresh in-memory store."""
    return InMemorySubmissionStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def analyzer() -> StaticAnalyzer:
    return StaticAnalyzer()


@pytest.fixture
def review_service(analyzer: StaticAnalyzer, notifier: RecordingNotifier) -> ReviewService:
    """Review service wired with test doubles."""
    audit = AuditService()
    return ReviewService(
        assessment_service=RiskAssessmentService(analyzer=analyzer, audit=audit, timeout_seconds=5),
        audit=audit,
        notifications=NotificationService(notifier),
    )


@pytest.fixture
def sample_submission_data() -> dict[str, Any]:
    """Complete, low-risk intake form."""
    return {
        "ai_system_name": "Contract Summarizer",
        "use_case": "Summarize vendor contracts",
        "business_purpose": "Speed up procurement review",
        "vendor": "Anthropic",
        "current_stage": "evaluation",
        "number_of_users": "1-10",
        "output_usage": "advisory_only",
        "human_review_level": "always_reviewed",
        "data_types": ["internal_docs"],
        "vendor_data_storage": "none",
        "user_training_required": True,
        "acceptable_use_required": True,
        "executive_sponsor_name": "Pat Example",
        "executive_sponsor_title": "CTO",
        "business_owner_name": "Sam Owner",
        "business_owner_email": "sam@example.com",
        "technical_owner_name": "Alex Tech",
        "technical_owner_email": "alex@example.com",
        "has_federal_contracts": "no",
        "usage_logging_enabled": True,
        "compliance_access": True,
        "incident_response_doc": True,
    }


@pytest.fixture
def high_risk_submission_data(sample_submission_data: dict[str, Any]) -> dict[str, Any]:
    """Complete intake form that scores CRITICAL."""
    return {
        **sample_submission_data,
        "vendor": "Acme AI",
        "current_stage": "production",
        "number_of_users": "1000+",
        "output_usage": "direct_action",
        "human_review_level": "none",
        "data_types": ["health", "pii"],
        "vendor_data_storage": "unknown",
        "user_training_required": False,
        "acceptable_use_required": False,
        "has_federal_contracts": "yes",
        "usage_logging_enabled": False,
        "compliance_access": False,
        "incident_response_doc": False,
    }


@pytest.fixture
def sample_submission(sample_submission_data: dict[str, Any]) -> SubmissionCreate:
    return SubmissionCreate(**sample_submission_data)


@pytest_asyncio.fixture
async def risk_review_client(
    store: InMemorySubmissionStore,
    review_service: ReviewService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Risk Review Service."""
    from services.risk_review.dependencies import reset_review_service, set_review_service
    from services.risk_review.main import app
    from services.risk_review.store import reset_store, set_store

    set_store(store)
    set_review_service(review_service)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    reset_store()
    reset_review_service()
