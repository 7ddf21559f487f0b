"""
PostgreSQL Submission Store
===========================

SubmissionStore backed by SQLAlchemy async sessions on PostgreSQL.

Each operation runs in its own transaction, so a write that has
returned is durable even if a later step of the same request fails.
Status changes and escalation use conditional UPDATEs, so concurrent
reviewers cannot both decide and escalation never lowers the stored
level or touches a decided submission.

Version: 0.1.0
"""

import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.database.postgres import PostgresClient
from shared.logging import get_logger
from shared.models import (
    TERMINAL_STATUSES,
    AuditLogCreate,
    AuditLogEntry,
    Priority,
    ReviewAction,
    ReviewActionType,
    ReviewComment,
    RiskAssessment,
    RiskAssessmentData,
    Submission,
    SubmissionFields,
    SubmissionReview,
    SubmissionStatus,
)
from services.risk_review.errors import (
    InvalidTransitionError,
    ReviewNotFoundError,
    StoreError,
    SubmissionNotFoundError,
)
from services.risk_review.models import (
    ASSESSMENT_CONTENT_COLUMNS,
    AuditLogModel,
    ReviewActionModel,
    ReviewCommentModel,
    RiskAssessmentModel,
    SubmissionModel,
    SubmissionReviewModel,
)
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class PostgresSubmissionStore(SubmissionStore):
    """
    PostgreSQL-backed submission store.

    Example:
        >>> store = PostgresSubmissionStore()
        >>> submission = await store.get_submission(submission_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        factory = self._session_factory or PostgresClient.get_session_factory()
        try:
            async with factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("store_operation_failed", error=str(e))
            raise StoreError(str(e)) from e

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def get_submission(self, submission_id: str) -> Submission | None:
        if not _is_uuid(submission_id):
            return None
        async with self._transaction() as session:
            row = await session.get(SubmissionModel, submission_id)
            return Submission.model_validate(row) if row else None

    async def create_submission(self, submitted_by_id: str, data: SubmissionFields) -> Submission:
        async with self._transaction() as session:
            row = SubmissionModel(
                **data.model_dump(),
                submitted_by_id=submitted_by_id,
                status=SubmissionStatus.DRAFT,
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return Submission.model_validate(row)

    async def update_submission(self, submission_id: str, changes: dict[str, Any]) -> Submission:
        async with self._transaction() as session:
            row = await self._require(session, submission_id)
            for name, value in changes.items():
                setattr(row, name, value)
            row.updated_at = datetime.now(UTC)
            await session.flush()
            return Submission.model_validate(row)

    async def list_submissions(
        self,
        statuses: Iterable[SubmissionStatus] | None = None,
    ) -> list[Submission]:
        query = select(SubmissionModel).order_by(SubmissionModel.created_at)
        if statuses is not None:
            query = query.where(SubmissionModel.status.in_(list(statuses)))
        async with self._transaction() as session:
            result = await session.execute(query)
            return [Submission.model_validate(row) for row in result.scalars()]

    async def set_status(
        self,
        submission_id: str,
        status: SubmissionStatus,
        submitted_at: datetime | None = None,
        expected_status: SubmissionStatus | None = None,
    ) -> Submission:
        values: dict[str, Any] = {"status": status, "updated_at": datetime.now(UTC)}
        if submitted_at is not None:
            values["submitted_at"] = submitted_at
        if not _is_uuid(submission_id):
            raise SubmissionNotFoundError(submission_id)

        stmt = update(SubmissionModel).where(SubmissionModel.id == submission_id)
        if expected_status is not None:
            stmt = stmt.where(SubmissionModel.status == expected_status)
        stmt = stmt.values(**values).returning(SubmissionModel)

        async with self._transaction() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                current = await self._require(session, submission_id)
                raise InvalidTransitionError(current.status.value, "change status of")
            return Submission.model_validate(row)

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    async def get_review(self, submission_id: str) -> SubmissionReview | None:
        async with self._transaction() as session:
            row = await self._find_review(session, submission_id)
            return SubmissionReview.model_validate(row) if row else None

    async def create_review_if_missing(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        async with self._transaction() as session:
            await self._require(session, submission_id)
            stmt = (
                insert(SubmissionReviewModel)
                .values(submission_id=submission_id, priority=priority, due_date=due_date)
                .on_conflict_do_nothing(index_elements=[SubmissionReviewModel.submission_id])
            )
            await session.execute(stmt)
            row = await self._find_review(session, submission_id)
            return SubmissionReview.model_validate(row)

    async def update_review_schedule(
        self,
        submission_id: str,
        priority: Priority,
        due_date: datetime | None,
    ) -> SubmissionReview:
        async with self._transaction() as session:
            row = await self._find_review(session, submission_id)
            if row is None:
                raise ReviewNotFoundError(submission_id)
            row.priority = priority
            row.due_date = due_date
            row.updated_at = datetime.now(UTC)
            await session.flush()
            return SubmissionReview.model_validate(row)

    async def advance_escalation(
        self,
        submission_id: str,
        new_level: int,
        escalated_at: datetime,
    ) -> bool:
        stmt = (
            update(SubmissionReviewModel)
            .where(
                SubmissionReviewModel.submission_id == submission_id,
                SubmissionReviewModel.escalation_level < new_level,
                SubmissionReviewModel.submission_id.in_(
                    select(SubmissionModel.id).where(
                        SubmissionModel.id == submission_id,
                        SubmissionModel.status.notin_(list(TERMINAL_STATUSES)),
                    )
                ),
            )
            .values(
                escalation_level=new_level,
                escalated_at=escalated_at,
                updated_at=datetime.now(UTC),
            )
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def add_review_action(
        self,
        review_id: str,
        performed_by_id: str,
        action: ReviewActionType,
        previous_status: SubmissionStatus | None = None,
        new_status: SubmissionStatus | None = None,
        notes: str | None = None,
    ) -> ReviewAction:
        async with self._transaction() as session:
            row = ReviewActionModel(
                review_id=review_id,
                performed_by_id=performed_by_id,
                action=action,
                previous_status=previous_status,
                new_status=new_status,
                notes=notes,
            )
            session.add(row)
            await session.flush()
            return ReviewAction.model_validate(row)

    async def list_review_actions(self, review_id: str) -> list[ReviewAction]:
        query = (
            select(ReviewActionModel)
            .where(ReviewActionModel.review_id == review_id)
            .order_by(ReviewActionModel.created_at)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            return [ReviewAction.model_validate(row) for row in result.scalars()]

    async def add_comment(
        self,
        review_id: str,
        author_id: str,
        content: str,
        is_internal: bool = False,
        section_name: str | None = None,
        field_name: str | None = None,
    ) -> ReviewComment:
        async with self._transaction() as session:
            row = ReviewCommentModel(
                review_id=review_id,
                author_id=author_id,
                content=content,
                is_internal=is_internal,
                section_name=section_name,
                field_name=field_name,
            )
            session.add(row)
            await session.flush()
            return ReviewComment.model_validate(row)

    async def list_comments(self, review_id: str) -> list[ReviewComment]:
        query = (
            select(ReviewCommentModel)
            .where(ReviewCommentModel.review_id == review_id)
            .order_by(ReviewCommentModel.created_at)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            return [ReviewComment.model_validate(row) for row in result.scalars()]

    # -------------------------------------------------------------------------
    # Assessments
    # -------------------------------------------------------------------------

    async def upsert_assessment(
        self,
        submission_id: str,
        data: RiskAssessmentData,
    ) -> RiskAssessment:
        values = data.model_dump(include=set(ASSESSMENT_CONTENT_COLUMNS))
        now = datetime.now(UTC)
        stmt = insert(RiskAssessmentModel).values(submission_id=submission_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RiskAssessmentModel.submission_id],
            set_={**{name: stmt.excluded[name] for name in ASSESSMENT_CONTENT_COLUMNS}, "updated_at": now},
        ).returning(RiskAssessmentModel)

        async with self._transaction() as session:
            result = await session.execute(stmt)
            row = result.scalar_one()
            logger.debug("assessment_upserted", submission_id=submission_id)
            return RiskAssessment.model_validate(row)

    async def get_assessment(self, submission_id: str) -> RiskAssessment | None:
        query = select(RiskAssessmentModel).where(RiskAssessmentModel.submission_id == submission_id)
        async with self._transaction() as session:
            row = (await session.execute(query)).scalar_one_or_none()
            return RiskAssessment.model_validate(row) if row else None

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def add_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry:
        async with self._transaction() as session:
            row = AuditLogModel(**entry.model_dump())
            session.add(row)
            await session.flush()
            return AuditLogEntry.model_validate(row)

    async def list_audit_logs(self, submission_id: str) -> list[AuditLogEntry]:
        query = (
            select(AuditLogModel)
            .where(AuditLogModel.submission_id == submission_id)
            .order_by(AuditLogModel.created_at)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            return [AuditLogEntry.model_validate(row) for row in result.scalars()]

    async def health_check(self) -> dict[str, Any]:
        return await PostgresClient.health_check()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    async def _require(session: AsyncSession, submission_id: str) -> SubmissionModel:
        if not _is_uuid(submission_id):
            raise SubmissionNotFoundError(submission_id)
        row = await session.get(SubmissionModel, submission_id)
        if row is None:
            raise SubmissionNotFoundError(submission_id)
        return row

    @staticmethod
    async def _find_review(session: AsyncSession, submission_id: str) -> SubmissionReviewModel | None:
        query = select(SubmissionReviewModel).where(SubmissionReviewModel.submission_id == submission_id)
        return (await session.execute(query)).scalar_one_or_none()
