"""Per-location API: token status, scheduled searches and stored results."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.scheduled_search import ScheduledSearch
from ..models.search_result import SearchResult
from ..schemas.scheduled_search import ScheduledSearchCreate, ScheduledSearchUpdate
from ..services import search_svc, token_svc

router = APIRouter(prefix="/api/locations/{location_id}", tags=["searches"])


def _search_out(search: ScheduledSearch) -> dict:
    return {
        "id": str(search.id),
        "ghl_location_id": search.ghl_location_id,
        "search_params": search.search_params,
        "frequency_days": search.frequency_days,
        "last_run": search.last_run.isoformat() if search.last_run else None,
        "next_run": search.next_run.isoformat() if search.next_run else None,
        "active": search.active,
        "created_at": search.created_at.isoformat() if search.created_at else None,
    }


def _result_out(row: SearchResult) -> dict:
    return {
        "id": str(row.id),
        "search_id": str(row.search_id) if row.search_id else None,
        "property_id": row.property_id,
        "property_data": row.property_data,
        "exported_to_ghl": row.exported_to_ghl,
        "ghl_contact_id": row.ghl_contact_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


@router.get("/token")
async def token_status(location_id: str, db: AsyncSession = Depends(get_db)):
    record = await token_svc.get_token(db, location_id)
    return token_svc.token_status(record)


@router.get("/searches")
async def list_searches(
    location_id: str,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
):
    searches = await search_svc.list_scheduled_searches(db, location_id, include_inactive)
    limit = await token_svc.get_max_searches_limit(db, location_id)
    active = await search_svc.count_active_searches(db, location_id)
    return {
        "searches": [_search_out(s) for s in searches],
        "active_count": active,
        "max_searches_limit": limit,
    }


@router.post("/searches", status_code=201)
async def create_search(
    location_id: str,
    body: ScheduledSearchCreate,
    db: AsyncSession = Depends(get_db),
):
    search = await search_svc.create_scheduled_search(
        db, location_id, body.search_params.to_storage(), body.frequency_days,
    )
    return _search_out(search)


@router.patch("/searches/{search_id}")
async def update_search(
    location_id: str,
    search_id: uuid.UUID,
    body: ScheduledSearchUpdate,
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True, exclude={"search_params"})
    if body.search_params is not None:
        changes["search_params"] = body.search_params.to_storage()
    search = await search_svc.update_scheduled_search(db, search_id, location_id, **changes)
    if search is None:
        raise HTTPException(status_code=404, detail="Scheduled search not found")
    return _search_out(search)


@router.delete("/searches/{search_id}", status_code=204)
async def delete_search(
    location_id: str,
    search_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    if not await search_svc.delete_scheduled_search(db, search_id, location_id):
        raise HTTPException(status_code=404, detail="Scheduled search not found")


@router.get("/results")
async def list_results(
    location_id: str,
    search_id: uuid.UUID | None = None,
    exported: bool | None = None,
    limit: int = 200,
    db: AsyncSession = Depends(get_db),
):
    rows = await search_svc.list_search_results(
        db, location_id, search_id=search_id, exported=exported, limit=min(limit, 1000),
    )
    return {"results": [_result_out(r) for r in rows]}
