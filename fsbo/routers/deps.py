"""Shared FastAPI dependencies: job auth and external collaborators."""

from __future__ import annotations

import hmac
from typing import AsyncIterator

from fastapi import HTTPException, Request

from ..config import settings
from ..listings.client import ListingSearchClient
from ..oauth.client import OAuthClient
from ..services.export_svc import ClientFactory


def verify_jobs_key(request: Request) -> None:
    """Require the shared X-Jobs-Key header when one is configured."""
    expected = settings.jobs_api_key
    if not expected:
        return
    provided = request.headers.get("x-jobs-key", "").strip()
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid jobs key")


def get_oauth_client() -> OAuthClient | None:
    if not settings.oauth_configured:
        return None
    return OAuthClient.from_settings()


async def get_property_source() -> AsyncIterator[ListingSearchClient | None]:
    if not settings.listing_api_configured:
        yield None
        return
    async with ListingSearchClient.from_settings() as source:
        yield source


def get_client_factory() -> ClientFactory | None:
    """GHL client factory; None selects the real client."""
    return None
