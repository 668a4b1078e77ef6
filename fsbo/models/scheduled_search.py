"""Recurring FSBO search owned by a GHL location."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin


class ScheduledSearch(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "scheduled_searches"

    ghl_location_id: Mapped[str] = mapped_column(String(100), index=True)
    search_params: Mapped[dict] = mapped_column(JSON)
    frequency_days: Mapped[int] = mapped_column(Integer)
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    next_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None, index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    results: Mapped[list["SearchResult"]] = relationship(  # noqa: F821
        back_populates="search", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<ScheduledSearch {self.ghl_location_id!r} every {self.frequency_days}d>"
