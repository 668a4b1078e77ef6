"""In-process worker that polls the scheduled-search and token-refresh jobs."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from .config import settings
from .database import async_session_factory
from .jobs import refresh_expiring_tokens, run_scheduled_searches
from .listings.client import ListingSearchClient, ListingSearchError
from .oauth.client import OAuthClient, OAuthError

logger = logging.getLogger(__name__)


class JobWorker:
    """Runs both background jobs on their own intervals until stopped."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._last_refresh: float | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None or not settings.worker_enabled:
            return
        self._stop_event.clear()
        self._last_refresh = None
        self._task = asyncio.create_task(self._run_loop(), name="fsbo-job-worker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    def _refresh_due(self) -> bool:
        if self._last_refresh is None:
            return True
        return time.monotonic() - self._last_refresh >= settings.worker_refresh_interval_seconds

    async def run_refresh_once(self) -> None:
        try:
            oauth = OAuthClient.from_settings()
        except OAuthError as e:
            logger.warning("Skipping token refresh: %s", e)
            return
        async with async_session_factory() as db:
            report = await refresh_expiring_tokens(db, oauth)
        logger.info("Token refresh job: %s", report.body.get("message") or report.body.get("error"))

    async def run_searches_once(self) -> int:
        try:
            source = ListingSearchClient.from_settings()
        except ListingSearchError as e:
            logger.warning("Skipping scheduled searches: %s", e)
            return 0
        async with source, async_session_factory() as db:
            report = await run_scheduled_searches(
                db, source, limit=settings.scheduled_search_batch_size,
            )
        return int(report.body.get("total_searches", 0))

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            processed = 0
            try:
                if self._refresh_due():
                    self._last_refresh = time.monotonic()
                    await self.run_refresh_once()
                processed = await self.run_searches_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # pragma: no cover - defensive log path
                logger.exception("Job worker loop failed")

            if not processed:
                await asyncio.sleep(settings.worker_search_interval_seconds)


job_worker = JobWorker()
