"""
Common Models
=============

Base response models and utilities.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated API response."""

    items: list[T]
    total: int
    page: int = 1
    page_size: int = 20
    pages: int = 1

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.pages

    @classmethod
    def from_items(cls, items: list[T], page: int, page_size: int) -> "PaginatedResponse[T]":
        """Slice an already-ordered list into one page."""
        total = len(items)
        start = (page - 1) * page_size
        pages = (total + page_size - 1) // page_size if total > 0 else 1
        return cls(
            items=items[start : start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
        )


class HealthResponse(BaseModel):
    """Service health check response."""

    status: str = "healthy"
    service: str
    version: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Component health
    components: dict[str, dict[str, Any]] = Field(default_factory=dict)
