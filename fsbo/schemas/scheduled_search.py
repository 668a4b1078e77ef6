"""Pydantic models for the scheduled search API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .property import SearchParams


class ScheduledSearchCreate(BaseModel):
    search_params: SearchParams
    frequency_days: int = Field(ge=1, le=365)


class ScheduledSearchUpdate(BaseModel):
    search_params: SearchParams | None = None
    frequency_days: int | None = Field(default=None, ge=1, le=365)
    active: bool | None = None
    next_run: datetime | None = None
