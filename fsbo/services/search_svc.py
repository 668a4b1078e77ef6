"""Scheduled search service - CRUD, quota guard, due selection, rescheduling."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from sqlalchemy import (
    JSON, Boolean, DateTime, Integer, String, Uuid, func, insert, literal, select, update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..errors import QuotaExceededError
from ..models.scheduled_search import ScheduledSearch
from ..models.search_result import SearchResult
from ..models.token import GHLServiceToken, as_utc
from ..schemas.property import PropertyRecord
from .token_svc import resolve_max_searches_limit

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _active_count_stmt(location_id: str):
    return (
        select(func.count(ScheduledSearch.id))
        .where(
            ScheduledSearch.ghl_location_id == location_id,
            ScheduledSearch.active.is_(True),
        )
    )


async def count_active_searches(db: AsyncSession, location_id: str) -> int:
    return int((await db.execute(_active_count_stmt(location_id))).scalar_one())


async def _locked_limit(db: AsyncSession, location_id: str) -> int:
    """Read the location's quota, row-locking its token where the backend supports it."""
    stmt = (
        select(GHLServiceToken.max_searches_limit)
        .where(GHLServiceToken.location_id == location_id)
        .with_for_update()
    )
    limit = (await db.execute(stmt)).scalar_one_or_none()
    return limit if limit is not None else resolve_max_searches_limit(location_id)


async def create_scheduled_search(
    db: AsyncSession,
    location_id: str,
    search_params: dict[str, Any],
    frequency_days: int,
) -> ScheduledSearch:
    """Insert a new search only if the location is below its active-search quota.

    The count check and the insert are one conditional ``INSERT ... SELECT``
    so concurrent creators cannot both slip past the limit.

    Raises:
        QuotaExceededError: If the location already has ``limit`` active searches
    """
    if frequency_days < 1:
        raise ValueError("frequency_days must be at least 1")

    limit = await _locked_limit(db, location_id)
    now = _now()
    new_id = uuid.uuid4()
    active_count = _active_count_stmt(location_id).scalar_subquery()

    candidate = select(
        literal(new_id, Uuid),
        literal(location_id, String),
        literal(search_params, JSON),
        literal(frequency_days, Integer),
        literal(now + timedelta(days=frequency_days), DateTime(timezone=True)),
        literal(True, Boolean),
    ).where(active_count < limit)

    stmt = insert(ScheduledSearch.__table__).from_select(
        ["id", "ghl_location_id", "search_params", "frequency_days", "next_run", "active"],
        candidate,
    )
    result = await db.execute(stmt)
    if not result.rowcount:
        await db.rollback()
        logger.info("Search quota of %s reached for location %s", limit, location_id)
        raise QuotaExceededError(limit, location_id)

    await db.commit()
    search = await get_scheduled_search(db, new_id)
    logger.info("Created scheduled search %s for location %s", new_id, location_id)
    return search


async def get_scheduled_search(
    db: AsyncSession,
    search_id: uuid.UUID,
    location_id: str | None = None,
) -> ScheduledSearch | None:
    stmt = select(ScheduledSearch).where(ScheduledSearch.id == search_id)
    if location_id is not None:
        stmt = stmt.where(ScheduledSearch.ghl_location_id == location_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_scheduled_searches(
    db: AsyncSession,
    location_id: str,
    include_inactive: bool = False,
) -> list[ScheduledSearch]:
    stmt = select(ScheduledSearch).where(ScheduledSearch.ghl_location_id == location_id)
    if not include_inactive:
        stmt = stmt.where(ScheduledSearch.active.is_(True))
    stmt = stmt.order_by(ScheduledSearch.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def update_scheduled_search(
    db: AsyncSession,
    search_id: uuid.UUID,
    location_id: str,
    **kwargs,
) -> ScheduledSearch | None:
    """Apply edits to a location's search.

    Reactivating a paused search is a conditional ``UPDATE`` guarded by the
    same active-count check as creation. Datetimes are stored in UTC.
    """
    search = await get_scheduled_search(db, search_id, location_id)
    if not search:
        return None

    if kwargs.get("active") is True and not search.active:
        limit = await _locked_limit(db, location_id)
        others = aliased(ScheduledSearch)
        active_count = (
            select(func.count(others.id))
            .where(others.ghl_location_id == location_id, others.active.is_(True))
            .scalar_subquery()
        )
        table = ScheduledSearch.__table__
        stmt = (
            update(table)
            .where(table.c.id == search.id, table.c.active.is_(False), active_count < limit)
            .values(active=True)
        )
        result = await db.execute(stmt)
        if not result.rowcount:
            await db.rollback()
            logger.info("Search quota of %s reached for location %s", limit, location_id)
            raise QuotaExceededError(limit, location_id)

    for key, value in kwargs.items():
        if value is None or not hasattr(search, key):
            continue
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(search, key, value)

    if (
        search.next_run is not None
        and search.last_run is not None
        and as_utc(search.next_run) < as_utc(search.last_run)
    ):
        search.next_run = search.last_run

    await db.commit()
    await db.refresh(search)
    return search


async def delete_scheduled_search(db: AsyncSession, search_id: uuid.UUID, location_id: str) -> bool:
    search = await get_scheduled_search(db, search_id, location_id)
    if not search:
        return False
    await db.delete(search)
    await db.commit()
    return True


async def list_due_searches(
    db: AsyncSession,
    now: datetime | None = None,
    limit: int | None = None,
) -> list[ScheduledSearch]:
    """Active searches whose next_run has passed, oldest first."""
    stmt = (
        select(ScheduledSearch)
        .where(
            ScheduledSearch.active.is_(True),
            ScheduledSearch.next_run <= as_utc(now or _now()),
        )
        .order_by(ScheduledSearch.next_run.asc(), ScheduledSearch.created_at.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def mark_search_run(
    db: AsyncSession,
    search: ScheduledSearch,
    now: datetime | None = None,
) -> ScheduledSearch:
    """Advance the cadence: last_run = now, next_run = now + frequency_days."""
    now = as_utc(now or _now())
    search.last_run = now
    search.next_run = now + timedelta(days=search.frequency_days)
    await db.commit()
    return search


async def save_search_results(
    db: AsyncSession,
    search_id: uuid.UUID | None,
    location_id: str,
    properties: Sequence[PropertyRecord],
) -> list[SearchResult]:
    """Persist un-exported result rows in input order."""
    rows = [
        SearchResult(
            search_id=search_id,
            ghl_location_id=location_id,
            property_data=prop.snapshot(),
            exported_to_ghl=False,
        )
        for prop in properties
    ]
    db.add_all(rows)
    await db.commit()
    return rows


async def list_search_results(
    db: AsyncSession,
    location_id: str,
    search_id: uuid.UUID | None = None,
    exported: bool | None = None,
    limit: int = 200,
) -> list[SearchResult]:
    stmt = select(SearchResult).where(SearchResult.ghl_location_id == location_id)
    if search_id is not None:
        stmt = stmt.where(SearchResult.search_id == search_id)
    if exported is not None:
        stmt = stmt.where(SearchResult.exported_to_ghl.is_(exported))
    stmt = stmt.order_by(SearchResult.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())
