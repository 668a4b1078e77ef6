"""Scheduled search runner.

Finds due searches, runs each one against the listing source, stores the
results, exports them to the owning location and reschedules the search.
Rescheduling happens whatever the export outcome so one location's CRM
trouble never stalls its cadence.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import AuthRequiredError
from ..listings.client import PropertySource
from ..models.scheduled_search import ScheduledSearch
from ..oauth.client import OAuthClient
from ..schemas.property import SearchParams
from ..services import search_svc
from ..services.export_svc import ClientFactory, export_properties
from .report import JobReport

logger = logging.getLogger(__name__)


async def run_search(
    db: AsyncSession,
    search: ScheduledSearch,
    source: PropertySource,
    *,
    oauth: OAuthClient | None = None,
    delay_seconds: float | None = None,
    deadline_seconds: float | None = None,
    client_factory: ClientFactory | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Execute one scheduled search end to end and return its detail entry."""
    search_id = search.id
    location_id = search.ghl_location_id
    detail: dict[str, Any] = {
        "search_id": str(search_id),
        "location_id": location_id,
        "properties_found": 0,
        "properties_exported": 0,
        "export_errors": 0,
        "export_error_details": [],
    }
    logger.info("Processing search %s for location %s", search_id, location_id)

    try:
        params = SearchParams.model_validate(search.search_params or {})
        properties = await source.search(params)
        detail["properties_found"] = len(properties)
        logger.info("Found %d properties for search %s", len(properties), search_id)

        rows = await search_svc.save_search_results(db, search_id, location_id, properties)

        if properties:
            try:
                batch = await export_properties(
                    db,
                    properties,
                    location_id,
                    search_id=search_id,
                    result_rows=rows,
                    oauth=oauth,
                    delay_seconds=delay_seconds,
                    deadline_seconds=deadline_seconds,
                    client_factory=client_factory,
                )
            except AuthRequiredError as e:
                logger.warning("Skipping export for search %s: %s", search_id, e)
                detail["export_errors"] = len(properties)
                detail["export_error_details"] = [
                    {"property_id": p.id, "error": str(e)} for p in properties
                ]
            else:
                detail["properties_exported"] = batch.exported
                detail["export_errors"] = batch.failed
                detail["export_error_details"] = [e.model_dump() for e in batch.errors]
        detail["status"] = "success" if detail["export_errors"] == 0 else "partial"
    except Exception as e:
        logger.exception("Error processing search %s", search_id)
        await db.rollback()
        detail["status"] = "error"
        detail["error"] = str(e)

    search = await search_svc.get_scheduled_search(db, search_id)
    if search is not None:
        await search_svc.mark_search_run(db, search, now=now or datetime.now(timezone.utc))
        detail["next_run"] = search.next_run.isoformat()
    return detail


async def run_scheduled_searches(
    db: AsyncSession,
    source: PropertySource,
    *,
    limit: int | None = 1,
    oauth: OAuthClient | None = None,
    delay_seconds: float | None = None,
    deadline_seconds: float | None = None,
    client_factory: ClientFactory | None = None,
    now: datetime | None = None,
) -> JobReport:
    """Run due searches in next_run order.

    ``limit=1`` is the background polling variant; ``limit=None`` drains
    every due search.
    """
    try:
        due = await search_svc.list_due_searches(db, now=now, limit=limit)
        if not due:
            logger.info("No scheduled searches due to run")
            return JobReport(body={
                "message": "No scheduled searches due to run",
                "total_searches": 0,
                "processed": 0,
                "errors": 0,
                "details": [],
            })

        deadline = settings.job_deadline_seconds if deadline_seconds is None else deadline_seconds
        details = []
        processed = 0
        errors = 0
        for search_id in [s.id for s in due]:
            search = await search_svc.get_scheduled_search(db, search_id)
            if search is None:
                continue
            detail = await run_search(
                db,
                search,
                source,
                oauth=oauth,
                delay_seconds=delay_seconds,
                deadline_seconds=deadline,
                client_factory=client_factory,
                now=now,
            )
            details.append(detail)
            if detail["status"] == "error":
                errors += 1
            else:
                processed += 1
                errors += detail["export_errors"]

        return JobReport(body={
            "message": f"Processed {processed} of {len(due)} scheduled searches",
            "total_searches": len(due),
            "processed": processed,
            "errors": errors,
            "details": details,
        })
    except Exception as e:
        logger.exception("Scheduled search job failed")
        return JobReport.failure(e, total_searches=0, processed=0, errors=1)
