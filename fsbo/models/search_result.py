"""Export audit record: one row per property found or exported."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, CreatedAtMixin


class SearchResult(UUIDMixin, CreatedAtMixin, Base):
    __tablename__ = "search_results"

    # Null for ad-hoc (manual) exports
    search_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("scheduled_searches.id", ondelete="SET NULL"), index=True, default=None
    )
    ghl_location_id: Mapped[str | None] = mapped_column(String(100), index=True, default=None)
    property_data: Mapped[dict] = mapped_column(JSON)
    exported_to_ghl: Mapped[bool] = mapped_column(Boolean, default=False)
    ghl_contact_id: Mapped[str | None] = mapped_column(String(100), default=None)

    search: Mapped["ScheduledSearch | None"] = relationship(back_populates="results")  # noqa: F821

    @property
    def property_id(self) -> str | None:
        value = (self.property_data or {}).get("id")
        return str(value) if value is not None else None

    def __repr__(self) -> str:
        return f"<SearchResult {self.property_id!r} exported={self.exported_to_ghl}>"
