"""
Audit Trail Service
===================

Writes append-only audit entries for submission lifecycle events.

Audit writes never break the operation being audited: failures are
logged as ``audit_log_failed`` and the caller carries on.

Version: 0.1.0
"""

import json
from typing import Any

from shared.logging import get_logger
from shared.models import (
    AuditAction,
    AuditCategory,
    AuditLogCreate,
    AuditLogEntry,
    SubmissionStatus,
)
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)

STATUS_CHANGE_DESCRIPTIONS: dict[AuditAction, str] = {
    AuditAction.REVIEW_STARTED: "Review started",
    AuditAction.APPROVED: "Submission approved",
    AuditAction.REJECTED: "Submission rejected",
    AuditAction.CHANGES_REQUESTED: "Changes requested",
}


def _status_value(status: SubmissionStatus | str | None) -> str | None:
    if status is None:
        return None
    return status.value if isinstance(status, SubmissionStatus) else status


class AuditService:
    """Audit trail writer."""

    async def record(self, store: SubmissionStore, entry: AuditLogCreate) -> AuditLogEntry | None:
        """
        Write one audit entry.

        Returns:
            The stored entry, or None if the write failed
        """
        try:
            return await store.add_audit_log(entry)
        except Exception as e:
            logger.error(
                "audit_log_failed",
                submission_id=entry.submission_id,
                action=entry.action.value,
                error=str(e),
            )
            return None

    async def log_created(self, store: SubmissionStore, submission_id: str, user_id: str) -> AuditLogEntry | None:
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.CREATED,
                category=AuditCategory.LIFECYCLE,
                new_status=SubmissionStatus.DRAFT.value,
                description="Submission created",
            ),
        )

    async def log_submitted(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        previous_status: SubmissionStatus,
        system_name: str | None = None,
    ) -> AuditLogEntry | None:
        description = f'Submitted "{system_name}" for review' if system_name else "Submitted for review"
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.SUBMITTED,
                category=AuditCategory.LIFECYCLE,
                previous_status=_status_value(previous_status),
                new_status=SubmissionStatus.SUBMITTED.value,
                description=description,
            ),
        )

    async def log_status_change(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        action: AuditAction,
        previous_status: SubmissionStatus,
        new_status: SubmissionStatus,
        notes: str | None = None,
    ) -> AuditLogEntry | None:
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=action,
                category=AuditCategory.STATUS_CHANGE,
                previous_status=_status_value(previous_status),
                new_status=_status_value(new_status),
                description=STATUS_CHANGE_DESCRIPTIONS.get(action, action.value),
                details={"notes": notes} if notes else None,
            ),
        )

    async def log_form_update(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        previous: dict[str, Any],
        current: dict[str, Any],
    ) -> AuditLogEntry | None:
        """
        One UPDATED entry listing every changed field.

        Nothing is written when no field actually changed.
        """
        changes = [
            {"field": name, "from": previous.get(name), "to": value}
            for name, value in current.items()
            if json.dumps(previous.get(name), default=str) != json.dumps(value, default=str)
        ]
        if not changes:
            return None

        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.UPDATED,
                category=AuditCategory.FORM_EDIT,
                field_name=changes[0]["field"] if len(changes) == 1 else None,
                description=f"Updated {len(changes)} field(s)",
                details={"changes": changes},
            ),
        )

    async def log_comment_added(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        is_internal: bool,
    ) -> AuditLogEntry | None:
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.COMMENT_ADDED,
                category=AuditCategory.COMMENT,
                description="Added internal comment" if is_internal else "Added comment",
                details={"is_internal": is_internal},
            ),
        )

    async def log_escalation(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        previous_level: int,
        new_level: int,
    ) -> AuditLogEntry | None:
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.ESCALATED,
                category=AuditCategory.STATUS_CHANGE,
                description=f"Escalated to level {new_level}",
                details={"previous_level": previous_level, "new_level": new_level},
            ),
        )

    async def log_assessed(
        self,
        store: SubmissionStore,
        submission_id: str,
        user_id: str,
        overall_level: str,
        overall_score: int,
        fallback: bool,
    ) -> AuditLogEntry | None:
        return await self.record(
            store,
            AuditLogCreate(
                submission_id=submission_id,
                performed_by_id=user_id,
                action=AuditAction.ASSESSED,
                category=AuditCategory.LIFECYCLE,
                description=f"Risk assessed as {overall_level} ({overall_score}/100)",
                details={"fallback": fallback},
            ),
        )

    async def history(self, store: SubmissionStore, submission_id: str) -> list[AuditLogEntry]:
        """Audit entries for a submission, oldest first."""
        return await store.list_audit_logs(submission_id)
