"""FastAPI application for FSBO lead sync."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .errors import (
    AuthRequiredError,
    FSBOError,
    MissingLocationIdError,
    QuotaExceededError,
    TenantMismatchError,
)
from .worker import job_worker

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); other databases use Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import create_all
        await create_all()
    job_worker.start()
    try:
        yield
    finally:
        await job_worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
    return JSONResponse(
        {"error": exc.message, "max_searches_limit": exc.limit},
        status_code=429,
    )


@app.exception_handler(AuthRequiredError)
async def auth_required_handler(request: Request, exc: AuthRequiredError):
    return JSONResponse(
        {"error": exc.message, "location_id": exc.location_id, "auth_required": True},
        status_code=401,
    )


@app.exception_handler(TenantMismatchError)
@app.exception_handler(MissingLocationIdError)
async def oauth_integrity_handler(request: Request, exc: FSBOError):
    return JSONResponse({"error": exc.message}, status_code=400)


# Import and register routers
from .routers import exports, health, jobs, oauth, searches  # noqa: E402

app.include_router(health.router)
app.include_router(jobs.router)
app.include_router(oauth.router)
app.include_router(searches.router)
app.include_router(exports.router)
