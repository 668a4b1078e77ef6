"""Per-location GHL OAuth token of record, used by background jobs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


def as_utc(dt: datetime) -> datetime:
    """Normalize naive/aware datetimes into UTC-aware datetimes for comparisons."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class GHLServiceToken(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "ghl_service_tokens"

    location_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text, default=None)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    company_id: Mapped[str | None] = mapped_column(String(100), default=None)
    max_searches_limit: Mapped[int] = mapped_column(Integer, default=100)

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= datetime.now(timezone.utc)

    @property
    def expires_in_seconds(self) -> int:
        """Seconds until the access token expires."""
        delta = as_utc(self.expires_at) - datetime.now(timezone.utc)
        return max(0, int(delta.total_seconds()))

    def is_expiring_within(self, seconds: float) -> bool:
        horizon = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        return as_utc(self.expires_at) < horizon

    def __repr__(self) -> str:
        return f"<GHLServiceToken {self.location_id!r} expires={self.expires_at}>"
