"""Background token refresher.

Sweeps every token expiring within the horizon and refreshes it, one
location at a time with a short pause between calls.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import TokenRefreshError
from ..oauth.client import OAuthClient
from ..services import token_svc
from .report import JobReport

logger = logging.getLogger(__name__)


async def refresh_expiring_tokens(
    db: AsyncSession,
    oauth: OAuthClient,
    *,
    horizon_seconds: int | None = None,
    delay_seconds: float | None = None,
) -> JobReport:
    try:
        tokens = await token_svc.list_expiring_tokens(db, within_seconds=horizon_seconds)
        if not tokens:
            return JobReport(body={"message": "No tokens need refreshing", "refreshed": 0, "errors": 0})

        delay = settings.token_refresh_delay_seconds if delay_seconds is None else delay_seconds
        refreshed = 0
        errors = 0
        details = []
        targets = [(t.location_id, t.max_searches_limit) for t in tokens]

        for index, (location_id, limit) in enumerate(targets):
            try:
                record = await token_svc.get_token(db, location_id)
                if record is None:
                    raise TokenRefreshError("Token removed during sweep", location_id)
                await token_svc.refresh_token_record(db, record, oauth)
            except TokenRefreshError as e:
                logger.warning("Error refreshing token for location %s: %s", location_id, e)
                errors += 1
                details.append({"location_id": location_id, "status": "error", "error": str(e)})
            except Exception as e:
                logger.exception("Unexpected error refreshing token for location %s", location_id)
                await db.rollback()
                errors += 1
                details.append({"location_id": location_id, "status": "error", "error": str(e)})
            else:
                refreshed += 1
                details.append({
                    "location_id": location_id,
                    "status": "success",
                    "preserved_limit": limit,
                })

            if delay > 0 and index < len(targets) - 1:
                await asyncio.sleep(delay)

        logger.info("Token refresh completed: %d refreshed, %d errors", refreshed, errors)
        return JobReport(body={
            "message": "Token refresh completed",
            "refreshed": refreshed,
            "errors": errors,
            "details": details,
        })
    except Exception as e:
        logger.exception("Token refresh job failed")
        return JobReport.failure(e, refreshed=0, errors=1)
