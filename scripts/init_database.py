#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Create the governance schema and tables, optionally with a sample draft.

Usage:
    python scripts/init_database.py
    python scripts/init_database.py --seed

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.logging import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="init-db")
logger = get_logger(__name__)

SEED_OWNER_ID = "seed-user"


async def init_postgres() -> bool:
    """Create the schema and every mapped table."""
    from sqlalchemy import text

    from shared.database.postgres import PostgresClient

    # Registers the ORM tables on the shared metadata
    import services.risk_review.models  # noqa: F401

    logger.info("postgres_init_started")

    try:
        await PostgresClient.create_schema()

        async with PostgresClient.get_engine().connect() as conn:
            result = await conn.execute(text("SELECT version()"))
            version = result.scalar() or ""
            logger.info("postgres_connected", version=version[:50])

        return True

    except Exception as e:
        logger.error("postgres_init_failed", error=str(e))
        return False


async def seed_data() -> bool:
    """Insert one sample draft submission."""
    from shared.models import SubmissionCreate
    from services.risk_review.store.postgres import PostgresSubmissionStore

    try:
        store = PostgresSubmissionStore()
        submission = await store.create_submission(
            SEED_OWNER_ID,
            SubmissionCreate(
                ai_system_name="Contract Summarizer",
                use_case="Summarize vendor contracts for procurement",
                vendor="Anthropic",
                current_stage="testing",
                number_of_users="11-50",
                output_usage="advisory_only",
                human_review_level="always_reviewed",
                data_types=["internal_docs"],
                vendor_data_storage="none",
                executive_sponsor_name="Pat Example",
            ),
        )
        logger.info("seed_submission_created", submission_id=submission.id)
        return True

    except Exception as e:
        logger.error("seed_failed", error=str(e))
        return False


async def main(args: argparse.Namespace) -> int:
    """Main initialization function."""
    from shared.database.postgres import PostgresClient

    results = {"postgres": await init_postgres()}
    if args.seed and results["postgres"]:
        results["seed"] = await seed_data()

    await PostgresClient.close()

    failed = [name for name, success in results.items() if not success]
    if failed:
        logger.error("init_failed", failed=failed)
        return 1

    logger.info("init_completed", steps=list(results))
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize the AI governance database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert a sample draft submission",
    )
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
