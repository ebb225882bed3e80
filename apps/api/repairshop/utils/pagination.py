"""Pagination utilities for list endpoints."""

from dataclasses import dataclass, field
from typing import Generic, TypeVar


T = TypeVar("T")

# Pagination limits
DEFAULT_LIMIT = 20
MAX_LIMIT = 50


def clamp_limit(limit: int | None) -> int:
    """Clamp a requested page size into 1..MAX_LIMIT."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


@dataclass
class CursorPage(Generic[T]):
    """
    Keyset page.

    ``next_cursor`` is the created_at of the last item when more rows exist;
    pass it back as a strict "older than" boundary.
    """
    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None
