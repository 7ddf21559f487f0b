"""
Submission Store Module
=======================

Persistence backends for the risk review service.

The backend is selected with STORE_BACKEND (postgres | memory).

Usage:
    from services.risk_review.store import get_store

    store = get_store()
    submission = await store.get_submission(submission_id)
"""

from shared.config import StoreBackend, settings
from shared.logging import get_logger
from services.risk_review.store.base import SubmissionStore
from services.risk_review.store.memory import InMemorySubmissionStore


logger = get_logger(__name__)

_store: SubmissionStore | None = None


def get_store() -> SubmissionStore:
    """
    Get the configured store instance (singleton).

    Also used as a FastAPI dependency.
    """
    global _store

    if _store is None:
        backend = settings.store.backend
        if backend == StoreBackend.MEMORY:
            _store = InMemorySubmissionStore()
        else:
            from services.risk_review.store.postgres import PostgresSubmissionStore

            _store = PostgresSubmissionStore()
        logger.info("store_initialized", backend=backend.value)

    return _store


def set_store(store: SubmissionStore) -> None:
    """Set a custom store instance (mainly for tests)."""
    global _store
    _store = store


def reset_store() -> None:
    """Reset the store singleton."""
    global _store
    _store = None


__all__ = [
    "SubmissionStore",
    "InMemorySubmissionStore",
    "get_store",
    "set_store",
    "reset_store",
]
