"""
Database Module
===============

Async PostgreSQL client (asyncpg + SQLAlchemy).

Usage:
    from shared.database import PostgresClient

    async with PostgresClient.get_session_factory()() as session:
        ...
"""

from shared.database.postgres import (
    SCHEMA,
    Base,
    PostgresClient,
)


__all__ = [
    "SCHEMA",
    "Base",
    "PostgresClient",
]
