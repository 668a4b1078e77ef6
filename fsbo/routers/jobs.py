"""Externally triggered job endpoints (cron / scheduler hooks)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..jobs import JobReport, refresh_expiring_tokens, run_scheduled_searches
from ..listings.client import PropertySource
from ..oauth.client import OAuthClient
from ..services.export_svc import ClientFactory
from .deps import get_client_factory, get_oauth_client, get_property_source, verify_jobs_key

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(verify_jobs_key)])


def _respond(report: JobReport) -> JSONResponse:
    return JSONResponse(report.body, status_code=report.status_code)


@router.post("/run-scheduled-searches")
async def run_scheduled_searches_job(
    all_due: bool = False,
    db: AsyncSession = Depends(get_db),
    source: PropertySource | None = Depends(get_property_source),
    client_factory: ClientFactory | None = Depends(get_client_factory),
):
    if source is None:
        return _respond(JobReport.failure(
            "Listing API not configured", total_searches=0, processed=0, errors=1,
        ))
    report = await run_scheduled_searches(
        db,
        source,
        limit=None if all_due else settings.scheduled_search_batch_size,
        client_factory=client_factory,
    )
    return _respond(report)


@router.post("/refresh-tokens")
async def refresh_tokens_job(
    db: AsyncSession = Depends(get_db),
    oauth: OAuthClient | None = Depends(get_oauth_client),
):
    if oauth is None:
        return _respond(JobReport.failure("GHL OAuth not configured", refreshed=0, errors=1))
    return _respond(await refresh_expiring_tokens(db, oauth))
