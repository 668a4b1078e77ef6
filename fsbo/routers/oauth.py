"""OAuth connect / callback / disconnect flow for GHL locations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..oauth.client import OAuthClient, OAuthError, pending_authorizations
from ..services import token_svc
from .deps import get_oauth_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


def _require_oauth(oauth: OAuthClient | None) -> OAuthClient:
    if oauth is None:
        raise HTTPException(status_code=503, detail="GHL OAuth is not configured")
    return oauth


@router.get("/authorize")
async def authorize(
    location_id: str | None = None,
    oauth: OAuthClient | None = Depends(get_oauth_client),
):
    """Redirect to the GHL consent screen, remembering the expected location."""
    client = _require_oauth(oauth)
    state = pending_authorizations.issue(location_id)
    return RedirectResponse(client.get_authorization_url(state), status_code=302)


@router.get("/callback")
async def callback(
    code: str,
    state: str,
    db: AsyncSession = Depends(get_db),
    oauth: OAuthClient | None = Depends(get_oauth_client),
):
    client = _require_oauth(oauth)
    known, expected_location = pending_authorizations.consume(state)
    if not known:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    try:
        tokens = await client.exchange_code(code)
    except OAuthError as e:
        logger.warning("OAuth code exchange failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    # A fresh connect adopts the returned location as the session tenant.
    session_location = expected_location or tokens.location_id
    record = await token_svc.store_tokens(db, tokens, session_location_id=session_location)
    return token_svc.token_status(record)


@router.post("/disconnect/{location_id}")
async def disconnect(location_id: str, db: AsyncSession = Depends(get_db)):
    return await token_svc.disconnect_location(db, location_id)
