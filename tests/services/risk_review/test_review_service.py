"""
Review Service Tests
====================

Tests for the submission lifecycle, reviewer decisions, comments and
escalation.

Version: 0.1.0
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from shared.models import (
    AuditAction,
    AuditLogCreate,
    CommentCreate,
    Priority,
    ReviewActionType,
    RiskAssessmentData,
    RiskLevel,
    Submission,
    SubmissionCreate,
    SubmissionStatus,
    SubmissionUpdate,
)
from services.risk_review.errors import (
    InvalidTransitionError,
    StoreError,
    SubmissionNotFoundError,
    SubmissionValidationError,
)
from services.risk_review.services.assessment import RiskAssessmentService
from services.risk_review.services.audit import AuditService
from services.risk_review.services.notifications import NotificationService
from services.risk_review.services.review import (
    ReviewService,
    SubmissionWorkflow,
    WorkflowAction,
)
from services.risk_review.services.sla import NO_SLA, SLAStatus
from services.risk_review.store import InMemorySubmissionStore
from tests.conftest import RecordingNotifier, StaticAnalyzer


OWNER = "owner-1"
REVIEWER = "reviewer-1"
T0 = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


class FlakyAssessmentStore(InMemorySubmissionStore):
    """Store whose assessment writes fail until switched back on."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_upserts = True

    async def upsert_assessment(self, submission_id: str, data: RiskAssessmentData) -> Any:
        if self.fail_upserts:
            raise StoreError("database unavailable")
        return await super().upsert_assessment(submission_id, data)


class NoAuditStore(InMemorySubmissionStore):
    async def add_audit_log(self, entry: AuditLogCreate) -> Any:
        raise RuntimeError("audit table locked")


class YieldingStore(InMemorySubmissionStore):
    """Store that hands control to other tasks on every submission read."""

    async def get_submission(self, submission_id: str) -> Submission | None:
        await asyncio.sleep(0)
        return await super().get_submission(submission_id)


class InterleavingStore(InMemorySubmissionStore):
    """Store that runs one competing call just before the next guarded write."""

    def __init__(self) -> None:
        super().__init__()
        self.before_write: Callable[[], Awaitable[Any]] | None = None

    async def _interleave(self) -> None:
        hook, self.before_write = self.before_write, None
        if hook is not None:
            await hook()

    async def set_status(self, *args: Any, **kwargs: Any) -> Submission:
        await self._interleave()
        return await super().set_status(*args, **kwargs)

    async def advance_escalation(self, *args: Any, **kwargs: Any) -> bool:
        await self._interleave()
        return await super().advance_escalation(*args, **kwargs)


async def _draft(
    service: ReviewService,
    store: InMemorySubmissionStore,
    data: dict[str, Any],
) -> Submission:
    return await service.create_submission(store, OWNER, SubmissionCreate(**data))


async def _submitted(
    service: ReviewService,
    store: InMemorySubmissionStore,
    data: dict[str, Any],
    now: datetime = T0,
) -> Submission:
    draft = await _draft(service, store, data)
    result = await service.submit(store, draft.id, OWNER, now=now)
    return result.submission


# =============================================================================
# State machine
# =============================================================================


class TestSubmissionWorkflow:
    def test_allowed_transitions(self) -> None:
        workflow = SubmissionWorkflow()

        assert workflow.get_next_status(SubmissionStatus.DRAFT, WorkflowAction.SUBMIT) == SubmissionStatus.SUBMITTED
        assert (
            workflow.get_next_status(SubmissionStatus.UNDER_REVIEW, WorkflowAction.REQUEST_CHANGES)
            == SubmissionStatus.DRAFT
        )

    @pytest.mark.parametrize(
        "status,action",
        [
            (SubmissionStatus.DRAFT, WorkflowAction.APPROVE),
            (SubmissionStatus.UNDER_REVIEW, WorkflowAction.START_REVIEW),
            (SubmissionStatus.APPROVED, WorkflowAction.REJECT),
            (SubmissionStatus.REJECTED, WorkflowAction.SUBMIT),
        ],
    )
    def test_rejected_transitions(self, status: SubmissionStatus, action: WorkflowAction) -> None:
        with pytest.raises(InvalidTransitionError):
            SubmissionWorkflow().get_next_status(status, action)


# =============================================================================
# Drafts
# =============================================================================


class TestDrafts:
    @pytest.mark.asyncio
    async def test_create_submission(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        assert draft.status == SubmissionStatus.DRAFT
        assert draft.submitted_by_id == OWNER
        assert draft.submitted_at is None
        logs = await store.list_audit_logs(draft.id)
        assert [entry.action for entry in logs] == [AuditAction.CREATED]

    @pytest.mark.asyncio
    async def test_update_changes_only_sent_fields(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        updated = await review_service.update_submission(
            store, draft.id, OWNER, SubmissionUpdate(vendor="Acme AI")
        )

        assert updated.vendor == "Acme AI"
        assert updated.ai_system_name == "Contract Summarizer"
        entry = (await store.list_audit_logs(draft.id))[-1]
        assert entry.action == AuditAction.UPDATED
        assert entry.field_name == "vendor"
        assert entry.details == {"changes": [{"field": "vendor", "from": "Anthropic", "to": "Acme AI"}]}

    @pytest.mark.asyncio
    async def test_unchanged_update_is_not_audited(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        await review_service.update_submission(store, draft.id, OWNER, SubmissionUpdate(vendor="Anthropic"))

        assert len(await store.list_audit_logs(draft.id)) == 1

    @pytest.mark.asyncio
    async def test_other_users_cannot_edit(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        with pytest.raises(SubmissionNotFoundError):
            await review_service.update_submission(store, draft.id, "intruder", SubmissionUpdate(vendor="X"))

    @pytest.mark.asyncio
    async def test_submitted_forms_are_locked(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        with pytest.raises(InvalidTransitionError):
            await review_service.update_submission(store, submission.id, OWNER, SubmissionUpdate(vendor="X"))

    @pytest.mark.asyncio
    async def test_unknown_submission(
        self, review_service: ReviewService, store: InMemorySubmissionStore
    ) -> None:
        with pytest.raises(SubmissionNotFoundError):
            await review_service.get_submission(store, "does-not-exist")


# =============================================================================
# Submit
# =============================================================================


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_runs_assessment(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        notifier: RecordingNotifier,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        result = await review_service.submit(store, draft.id, OWNER, now=T0)

        assert result.submission.status == SubmissionStatus.SUBMITTED
        assert result.submission.submitted_at == T0
        assert result.assessment_status == "completed"
        assert result.assessment is not None
        assert result.assessment.overall_level == RiskLevel.LOW
        assert [e.action for e in await store.list_audit_logs(draft.id)] == [
            AuditAction.CREATED,
            AuditAction.SUBMITTED,
            AuditAction.ASSESSED,
        ]
        assert notifier.events[0][0] == "submission.received"

    @pytest.mark.asyncio
    async def test_incomplete_draft_is_rejected(
        self, review_service: ReviewService, store: InMemorySubmissionStore
    ) -> None:
        draft = await review_service.create_submission(
            store,
            OWNER,
            SubmissionCreate(ai_system_name="Bot", business_owner_email="not-an-email"),
        )

        with pytest.raises(SubmissionValidationError) as exc_info:
            await review_service.submit(store, draft.id, OWNER)

        fields = [issue["field"] for issue in exc_info.value.issues]
        assert fields == [
            "use_case",
            "vendor",
            "current_stage",
            "output_usage",
            "human_review_level",
            "executive_sponsor_name",
            "data_types",
            "business_owner_email",
        ]
        assert (await store.get_submission(draft.id)).status == SubmissionStatus.DRAFT

    @pytest.mark.asyncio
    async def test_blank_strings_count_as_missing(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, {**sample_submission_data, "vendor": "   "})

        with pytest.raises(SubmissionValidationError) as exc_info:
            await review_service.submit(store, draft.id, OWNER)

        assert exc_info.value.issues == [{"field": "vendor", "message": "Vendor is required"}]

    @pytest.mark.asyncio
    async def test_cannot_submit_twice(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        with pytest.raises(InvalidTransitionError):
            await review_service.submit(store, submission.id, OWNER)

    @pytest.mark.asyncio
    async def test_only_owner_can_submit(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        with pytest.raises(SubmissionNotFoundError):
            await review_service.submit(store, draft.id, "someone-else")

    @pytest.mark.asyncio
    async def test_failed_assessment_keeps_submission(
        self,
        review_service: ReviewService,
        sample_submission_data: dict[str, Any],
    ) -> None:
        """Test the submission stays SUBMITTED and the assessment can be retried."""
        store = FlakyAssessmentStore()
        draft = await _draft(review_service, store, sample_submission_data)

        result = await review_service.submit(store, draft.id, OWNER)

        assert result.assessment_status == "failed"
        assert result.assessment is None
        assert result.error
        assert (await store.get_submission(draft.id)).status == SubmissionStatus.SUBMITTED

        store.fail_upserts = False
        retried = await review_service.retry_assessment(store, draft.id, REVIEWER)

        assert retried.assessment.overall_level == RiskLevel.LOW
        assert await review_service.get_assessment(store, draft.id) == retried.assessment

    @pytest.mark.asyncio
    async def test_fallback_is_reported(
        self,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        service = ReviewService(RiskAssessmentService(analysis_enabled=False))
        draft = await _draft(service, store, sample_submission_data)

        result = await service.submit(store, draft.id, OWNER)

        assert result.assessment_status == "fallback"

    @pytest.mark.asyncio
    async def test_side_channel_failures_do_not_block(
        self,
        analyzer: StaticAnalyzer,
        sample_submission_data: dict[str, Any],
    ) -> None:
        """Test broken audit and notification delivery never fail the submission."""
        store = NoAuditStore()
        audit = AuditService()
        service = ReviewService(
            RiskAssessmentService(analyzer=analyzer, audit=audit),
            audit=audit,
            notifications=NotificationService(RecordingNotifier(fail=True)),
        )
        draft = await _draft(service, store, sample_submission_data)

        result = await service.submit(store, draft.id, OWNER)

        assert result.assessment_status == "completed"

    @pytest.mark.asyncio
    async def test_retry_requires_open_submission(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        with pytest.raises(InvalidTransitionError):
            await review_service.retry_assessment(store, draft.id, REVIEWER)


# =============================================================================
# Decisions
# =============================================================================


class TestDecisions:
    @pytest.mark.asyncio
    async def test_start_review_creates_review(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        notifier: RecordingNotifier,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)

        result = await review_service.start_review(store, submission.id, REVIEWER)

        assert result.previous_status == SubmissionStatus.SUBMITTED
        assert result.submission.status == SubmissionStatus.UNDER_REVIEW
        assert result.action.action == ReviewActionType.REVIEW_STARTED
        review = await store.get_review(submission.id)
        assert review.priority == Priority.URGENT
        assert review.due_date == T0 + timedelta(hours=24)
        assert notifier.events[-1][0] == "submission.status_changed"
        assert notifier.events[-1][1]["new_status"] == "UNDER_REVIEW"

    @pytest.mark.asyncio
    async def test_approve_directly_from_submitted(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        result = await review_service.approve(store, submission.id, REVIEWER)

        assert result.submission.status == SubmissionStatus.APPROVED
        with pytest.raises(InvalidTransitionError):
            await review_service.reject(store, submission.id, REVIEWER, "too late")

    @pytest.mark.asyncio
    async def test_concurrent_decisions_apply_once(
        self,
        review_service: ReviewService,
        sample_submission_data: dict[str, Any],
    ) -> None:
        store = YieldingStore()
        submission = await _submitted(review_service, store, sample_submission_data)

        results = await asyncio.gather(
            review_service.approve(store, submission.id, REVIEWER),
            review_service.reject(store, submission.id, "reviewer-2", "Unsupported vendor"),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidTransitionError)
        review = await store.get_review(submission.id)
        decisions = [
            a.action
            for a in await store.list_review_actions(review.id)
            if a.action in (ReviewActionType.APPROVED, ReviewActionType.REJECTED)
        ]
        assert len(decisions) == 1
        final = await store.get_submission(submission.id)
        assert final.status.value == decisions[0].value

    @pytest.mark.asyncio
    async def test_decision_fails_when_status_changed_underneath(
        self,
        review_service: ReviewService,
        sample_submission_data: dict[str, Any],
    ) -> None:
        store = InterleavingStore()
        submission = await _submitted(review_service, store, sample_submission_data)

        async def reject_first() -> None:
            await review_service.reject(store, submission.id, "reviewer-2", "Unsupported vendor")

        store.before_write = reject_first
        with pytest.raises(InvalidTransitionError):
            await review_service.approve(store, submission.id, REVIEWER)

        assert (await store.get_submission(submission.id)).status == SubmissionStatus.REJECTED
        review = await store.get_review(submission.id)
        actions = [a.action for a in await store.list_review_actions(review.id)]
        assert ReviewActionType.APPROVED not in actions
        assert actions.count(ReviewActionType.REJECTED) == 1

    @pytest.mark.asyncio
    async def test_concurrent_submits_apply_once(
        self,
        review_service: ReviewService,
        sample_submission_data: dict[str, Any],
    ) -> None:
        store = YieldingStore()
        draft = await _draft(review_service, store, sample_submission_data)

        results = await asyncio.gather(
            review_service.submit(store, draft.id, OWNER, now=T0),
            review_service.submit(store, draft.id, OWNER, now=T0),
            return_exceptions=True,
        )

        assert sum(isinstance(r, InvalidTransitionError) for r in results) == 1
        entries = await store.list_audit_logs(draft.id)
        assert [e.action for e in entries].count(AuditAction.SUBMITTED) == 1

    @pytest.mark.asyncio
    async def test_store_rejects_stale_expected_status(self, store: InMemorySubmissionStore) -> None:
        submission = await store.create_submission(OWNER, SubmissionCreate(ai_system_name="Bot"))

        with pytest.raises(InvalidTransitionError):
            await store.set_status(
                submission.id,
                SubmissionStatus.APPROVED,
                expected_status=SubmissionStatus.UNDER_REVIEW,
            )

        assert (await store.get_submission(submission.id)).status == SubmissionStatus.DRAFT

    @pytest.mark.asyncio
    async def test_cannot_approve_draft(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        with pytest.raises(InvalidTransitionError):
            await review_service.approve(store, draft.id, REVIEWER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("notes", [None, "", "   "])
    async def test_reject_requires_reason(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
        notes: str | None,
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        with pytest.raises(SubmissionValidationError):
            await review_service.reject(store, submission.id, REVIEWER, notes)

        assert (await store.get_submission(submission.id)).status == SubmissionStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_reject_with_reason(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        result = await review_service.reject(store, submission.id, REVIEWER, "Unsupported vendor")

        assert result.submission.status == SubmissionStatus.REJECTED
        assert result.action.notes == "Unsupported vendor"
        entry = (await store.list_audit_logs(submission.id))[-1]
        assert entry.action == AuditAction.REJECTED
        assert entry.details == {"notes": "Unsupported vendor"}

    @pytest.mark.asyncio
    async def test_request_changes_returns_to_draft(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)
        await review_service.start_review(store, submission.id, REVIEWER)

        result = await review_service.request_changes(store, submission.id, REVIEWER, "Add a DPA")

        assert result.submission.status == SubmissionStatus.DRAFT
        comments = await review_service.list_comments(store, submission.id, include_internal=False)
        assert [c.content for c in comments] == ["Changes Requested:\n\nAdd a DPA"]
        history = await review_service.review_history(store, submission.id)
        assert [a.action for a in history] == [
            ReviewActionType.REVIEW_STARTED,
            ReviewActionType.CHANGES_REQUESTED,
        ]

    @pytest.mark.asyncio
    async def test_resubmission_reschedules_review(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        """Test re-assessment re-derives the schedule but keeps the escalation level."""
        submission = await _submitted(review_service, store, high_risk_submission_data)
        await review_service.start_review(store, submission.id, REVIEWER)
        await review_service.escalate(store, submission.id, REVIEWER, now=T0 + timedelta(hours=30))
        await review_service.request_changes(store, submission.id, REVIEWER, "Reduce data scope")

        await review_service.update_submission(
            store, submission.id, OWNER, SubmissionUpdate(**sample_submission_data)
        )
        resubmitted_at = T0 + timedelta(hours=40)
        result = await review_service.submit(store, submission.id, OWNER, now=resubmitted_at)

        assert result.assessment.overall_level == RiskLevel.LOW
        review = await store.get_review(submission.id)
        assert review.priority == Priority.LOW
        assert review.due_date == resubmitted_at + timedelta(hours=240)
        assert review.escalation_level == 2


# =============================================================================
# Comments
# =============================================================================


class TestComments:
    @pytest.mark.asyncio
    async def test_internal_comments_are_filtered(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)
        await review_service.add_comment(
            store, submission.id, REVIEWER, CommentCreate(content="Vendor looks shaky", is_internal=True)
        )
        await review_service.add_comment(
            store,
            submission.id,
            REVIEWER,
            CommentCreate(content="  Please attach the DPA  ", section_name="vendor"),
        )

        everything = await review_service.list_comments(store, submission.id)
        visible = await review_service.list_comments(store, submission.id, include_internal=False)

        assert len(everything) == 2
        assert [c.content for c in visible] == ["Please attach the DPA"]
        assert visible[0].section_name == "vendor"
        actions = [e.action for e in await store.list_audit_logs(submission.id)]
        assert actions.count(AuditAction.COMMENT_ADDED) == 2

    @pytest.mark.asyncio
    async def test_empty_comment_rejected(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        with pytest.raises(SubmissionValidationError):
            await review_service.add_comment(store, submission.id, REVIEWER, CommentCreate(content="  "))

    @pytest.mark.asyncio
    async def test_no_comments_before_review(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        assert await review_service.list_comments(store, draft.id) == []
        assert await review_service.review_history(store, draft.id) == []


# =============================================================================
# SLA and escalation
# =============================================================================


class TestSLAAndEscalation:
    @pytest.mark.asyncio
    async def test_no_sla_before_review(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, sample_submission_data)

        assert await review_service.sla_status(store, submission.id) == NO_SLA

    @pytest.mark.asyncio
    async def test_sla_after_review_starts(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        await review_service.start_review(store, submission.id, REVIEWER)

        info = await review_service.sla_status(store, submission.id, now=T0 + timedelta(hours=20))

        assert info.status == SLAStatus.AT_RISK
        assert info.display_text == "4h remaining"

    @pytest.mark.asyncio
    async def test_escalate_jumps_to_warranted_level(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        notifier: RecordingNotifier,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        now = T0 + timedelta(hours=30)

        result = await review_service.escalate(store, submission.id, now=now)

        assert result.escalated
        assert result.previous_level == 0
        assert result.new_level == 2
        assert result.escalated_at == now
        assert result.notify_roles == ["ADMIN"]

        review = await store.get_review(submission.id)
        assert review.escalation_level == 2
        assert review.escalated_at == now
        actions = await store.list_review_actions(review.id)
        assert actions[-1].action == ReviewActionType.ESCALATED
        assert actions[-1].notes == "Second escalation - notify admins"
        assert actions[-1].performed_by_id == "system"
        entry = (await store.list_audit_logs(submission.id))[-1]
        assert entry.action == AuditAction.ESCALATED
        assert entry.details == {"previous_level": 0, "new_level": 2}
        assert notifier.events[-1][0] == "submission.escalated"

    @pytest.mark.asyncio
    async def test_escalate_is_idempotent(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        now = T0 + timedelta(hours=13)

        first = await review_service.escalate(store, submission.id, now=now)
        second = await review_service.escalate(store, submission.id, now=now)

        assert first.escalated
        assert not second.escalated
        assert second.new_level == 1
        assert second.message == "No escalation needed at this time"

    @pytest.mark.asyncio
    async def test_concurrent_escalations_apply_once(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        now = T0 + timedelta(hours=13)

        results = await asyncio.gather(
            review_service.escalate(store, submission.id, now=now),
            review_service.escalate(store, submission.id, now=now),
        )

        assert sum(r.escalated for r in results) == 1
        review = await store.get_review(submission.id)
        assert review.escalation_level == 1
        actions = await store.list_review_actions(review.id)
        assert [a.action for a in actions].count(ReviewActionType.ESCALATED) == 1

    @pytest.mark.asyncio
    async def test_drafts_cannot_be_escalated(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
    ) -> None:
        draft = await _draft(review_service, store, sample_submission_data)

        with pytest.raises(InvalidTransitionError):
            await review_service.escalate(store, draft.id)

    @pytest.mark.asyncio
    async def test_terminal_submissions_stay_put(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        await review_service.approve(store, submission.id, REVIEWER)

        result = await review_service.escalate(store, submission.id, now=T0 + timedelta(hours=100))

        assert not result.escalated
        assert (await store.get_review(submission.id)).escalation_level == 0

    @pytest.mark.asyncio
    async def test_approval_during_escalation_freezes_level(
        self,
        review_service: ReviewService,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        store = InterleavingStore()
        submission = await _submitted(review_service, store, high_risk_submission_data)

        async def approve_first() -> None:
            await review_service.approve(store, submission.id, REVIEWER)

        store.before_write = approve_first
        result = await review_service.escalate(store, submission.id, now=T0 + timedelta(hours=30))

        assert not result.escalated
        assert result.message == "Submission has already been decided"
        assert (await store.get_submission(submission.id)).status == SubmissionStatus.APPROVED
        review = await store.get_review(submission.id)
        assert review.escalation_level == 0
        actions = [a.action for a in await store.list_review_actions(review.id)]
        assert ReviewActionType.ESCALATED not in actions

    @pytest.mark.asyncio
    async def test_concurrent_escalation_and_approval(
        self,
        review_service: ReviewService,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        store = YieldingStore()
        submission = await _submitted(review_service, store, high_risk_submission_data)

        escalation, decision = await asyncio.gather(
            review_service.escalate(store, submission.id, now=T0 + timedelta(hours=30)),
            review_service.approve(store, submission.id, REVIEWER),
        )

        assert decision.submission.status == SubmissionStatus.APPROVED
        review = await store.get_review(submission.id)
        actions = [a.action for a in await store.list_review_actions(review.id)]
        if escalation.escalated:
            # Escalation landed while the submission was still open
            assert review.escalation_level == escalation.new_level
            assert actions.count(ReviewActionType.ESCALATED) == 1
        else:
            assert review.escalation_level == 0
            assert ReviewActionType.ESCALATED not in actions

    @pytest.mark.asyncio
    async def test_escalation_status_has_no_side_effects(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        submission = await _submitted(review_service, store, high_risk_submission_data)
        await review_service.start_review(store, submission.id, REVIEWER)

        status = await review_service.escalation_status(store, submission.id, now=T0 + timedelta(hours=30))

        assert status.needs_escalation
        assert status.next_level == 2
        assert status.escalation_level == 0
        assert (await store.get_review(submission.id)).escalation_level == 0


# =============================================================================
# Queue
# =============================================================================


class TestReviewQueue:
    @pytest.mark.asyncio
    async def test_queue_orders_by_urgency(
        self,
        review_service: ReviewService,
        store: InMemorySubmissionStore,
        sample_submission_data: dict[str, Any],
        high_risk_submission_data: dict[str, Any],
    ) -> None:
        low = await _submitted(review_service, store, sample_submission_data, now=T0)
        critical = await _submitted(
            review_service, store, high_risk_submission_data, now=T0 + timedelta(hours=1)
        )
        await _draft(review_service, store, sample_submission_data)
        done = await _submitted(review_service, store, sample_submission_data, now=T0)
        await review_service.approve(store, done.id, REVIEWER)

        queue = await review_service.review_queue(store, now=T0 + timedelta(hours=2))

        assert [entry.submission_id for entry in queue] == [critical.id, low.id]
        assert queue[0].priority == Priority.URGENT
        assert queue[0].priority_score == 400
        assert queue[1].priority == Priority.LOW
        assert queue[1].risk_level == RiskLevel.LOW
