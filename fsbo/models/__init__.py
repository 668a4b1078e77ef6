"""FSBO lead sync models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, CreatedAtMixin, TimestampMixin
from .token import GHLServiceToken
from .scheduled_search import ScheduledSearch
from .search_result import SearchResult

__all__ = [
    "Base",
    "UUIDMixin",
    "CreatedAtMixin",
    "TimestampMixin",
    "GHLServiceToken",
    "ScheduledSearch",
    "SearchResult",
]
