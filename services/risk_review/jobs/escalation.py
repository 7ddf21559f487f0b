#!/usr/bin/env python3
"""
Escalation Sweep Job
====================

Periodically escalates open submissions that have waited too long.

Each open submission is checked on its own; a failure on one is logged
and the sweep moves on. Escalation is set-if-greater in the store, so
overlapping sweeps or a concurrent manual escalation never lower or
repeat a level.

Usage:
    python -m services.risk_review.jobs.escalation --once
    python -m services.risk_review.jobs.escalation --interval 300

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime

from shared.config import settings
from shared.logging import get_logger, setup_logging
from shared.models import OPEN_STATUSES
from services.risk_review.services.review import SYSTEM_ACTOR, ReviewService
from services.risk_review.store.base import SubmissionStore


logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 300


@dataclass
class SweepReport:
    """Counts from one sweep."""

    checked: int = 0
    escalated: int = 0
    failed: int = 0
    escalated_ids: list[str] = field(default_factory=list)


class EscalationSweep:
    """Runs escalation over every open submission."""

    def __init__(self, review_service: ReviewService) -> None:
        self.review_service = review_service

    async def run_once(self, store: SubmissionStore, now: datetime | None = None) -> SweepReport:
        """
        One pass over open submissions.

        Args:
            store: Submission store
            now: Evaluation instant, shared by every submission in the pass

        Returns:
            SweepReport with per-pass counts
        """
        now = now or datetime.now(UTC)
        report = SweepReport()

        for submission in await store.list_submissions(OPEN_STATUSES):
            if submission.submitted_at is None:
                continue
            report.checked += 1
            try:
                result = await self.review_service.escalate(
                    store, submission.id, SYSTEM_ACTOR, now=now
                )
            except Exception as e:
                report.failed += 1
                logger.error(
                    "escalation_sweep_item_failed",
                    submission_id=submission.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if result.escalated:
                report.escalated += 1
                report.escalated_ids.append(submission.id)

        logger.info(
            "escalation_sweep_completed",
            checked=report.checked,
            escalated=report.escalated,
            failed=report.failed,
        )
        return report

    async def run_forever(self, store: SubmissionStore, interval_seconds: float) -> None:
        """Sweep, sleep, repeat until cancelled."""
        while True:
            try:
                await self.run_once(store)
            except Exception as e:
                logger.error("escalation_sweep_failed", error=str(e))
            await asyncio.sleep(interval_seconds)


async def main(args: argparse.Namespace) -> int:
    """Job entry point."""
    from services.risk_review.dependencies import get_review_service
    from services.risk_review.store import get_store

    sweep = EscalationSweep(get_review_service())
    store = get_store()

    if args.once:
        report = await sweep.run_once(store)
        return 1 if report.failed else 0

    logger.info("escalation_sweep_started", interval_seconds=args.interval)
    await sweep.run_forever(store, args.interval)
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Escalate overdue AI system reviews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL_SECONDS,
        help=f"Seconds between sweeps (default: {DEFAULT_INTERVAL_SECONDS})",
    )
    return parser.parse_args()


if __name__ == "__main__":
    setup_logging(
        log_level=settings.log_level.value,
        json_logs=settings.is_production,
        service_name="escalation-sweep",
    )
    exit_code = asyncio.run(main(parse_args()))
    sys.exit(exit_code)
