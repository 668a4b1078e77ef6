"""Token store and manager for per-location GHL OAuth tokens.

One ``GHLServiceToken`` row exists per location. Rows are upserted on a
successful code exchange, mutated in place on refresh and only removed by an
explicit disconnect.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import (
    AuthRequiredError,
    MissingLocationIdError,
    TenantMismatchError,
    TokenExpiredError,
    TokenRefreshError,
)
from ..models.scheduled_search import ScheduledSearch
from ..models.token import GHLServiceToken
from ..oauth.client import OAuthClient, OAuthError, OAuthTokens

logger = logging.getLogger(__name__)


class TokenState(str, enum.Enum):
    NO_TOKEN = "no_token"
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


def resolve_max_searches_limit(location_id: str) -> int:
    """Quota policy lookup: elevated locations, else the default."""
    return settings.elevated_quota_map.get(location_id, settings.default_max_searches_limit)


def token_state(record: GHLServiceToken | None, horizon_seconds: int | None = None) -> TokenState:
    if record is None:
        return TokenState.NO_TOKEN
    if record.is_expired:
        return TokenState.EXPIRED
    horizon = settings.token_refresh_horizon_seconds if horizon_seconds is None else horizon_seconds
    if record.is_expiring_within(horizon):
        return TokenState.EXPIRING_SOON
    return TokenState.ACTIVE


async def get_token(db: AsyncSession, location_id: str) -> GHLServiceToken | None:
    stmt = select(GHLServiceToken).where(GHLServiceToken.location_id == location_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_max_searches_limit(db: AsyncSession, location_id: str) -> int:
    """Stored quota for the location, or the policy value when not connected."""
    record = await get_token(db, location_id)
    if record is None:
        return resolve_max_searches_limit(location_id)
    return record.max_searches_limit


async def store_tokens(
    db: AsyncSession,
    tokens: OAuthTokens,
    *,
    session_location_id: str | None,
) -> GHLServiceToken:
    """Upsert the token row for ``tokens.location_id``.

    ``session_location_id`` is the tenant the calling session already
    established; a token response for any other location is rejected.
    """
    location_id = tokens.location_id
    if not location_id:
        raise MissingLocationIdError()
    if location_id != session_location_id:
        logger.error(
            "Location IDs do not match: session=%s token=%s", session_location_id, location_id
        )
        raise TenantMismatchError(session_location_id, location_id)

    limit = resolve_max_searches_limit(location_id)
    record = await get_token(db, location_id)
    if record is None:
        record = GHLServiceToken(location_id=location_id)
        db.add(record)

    record.access_token = tokens.access_token
    record.refresh_token = tokens.refresh_token
    record.expires_at = tokens.expires_at
    record.company_id = tokens.company_id
    record.max_searches_limit = limit
    record.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(record)
    logger.info(
        "Stored GHL tokens for location %s (max_searches_limit=%s)", location_id, limit
    )
    return record


async def refresh_token_record(
    db: AsyncSession,
    record: GHLServiceToken,
    oauth: OAuthClient,
) -> GHLServiceToken:
    """Refresh one location's token in place, preserving its quota.

    Raises:
        TokenRefreshError: If the location has no refresh token or GHL rejects it
    """
    if not record.refresh_token:
        raise TokenRefreshError("No refresh token stored", record.location_id)

    try:
        tokens = await oauth.refresh_tokens(record.refresh_token)
    except OAuthError as e:
        raise TokenRefreshError(f"Token refresh failed: {e}", record.location_id) from e

    preserved_limit = record.max_searches_limit
    now = datetime.now(timezone.utc)
    record.access_token = tokens.access_token
    record.refresh_token = tokens.refresh_token
    record.expires_at = now + timedelta(seconds=tokens.expires_in)
    record.updated_at = now
    record.max_searches_limit = preserved_limit
    if tokens.company_id and not record.company_id:
        record.company_id = tokens.company_id

    await db.commit()
    await db.refresh(record)
    return record


async def get_valid_token(
    db: AsyncSession,
    location_id: str,
    *,
    oauth: OAuthClient | None = None,
) -> str:
    """Return a non-expired access token for the location.

    Background callers pass no ``oauth`` client and get ``TokenExpiredError``
    for an expired token; interactive callers pass one and get a refresh
    attempt first.

    Raises:
        AuthRequiredError: If the location has never been connected
        TokenExpiredError: If the token is expired and was not refreshed
    """
    record = await get_token(db, location_id)
    if record is None:
        raise AuthRequiredError(location_id)

    if not record.is_expired:
        return record.access_token

    if oauth is None:
        raise TokenExpiredError(location_id)

    try:
        record = await refresh_token_record(db, record, oauth)
    except TokenRefreshError as e:
        logger.warning("Refresh on read failed for location %s: %s", location_id, e)
        raise TokenExpiredError(location_id) from e
    return record.access_token


async def list_expiring_tokens(
    db: AsyncSession,
    within_seconds: int | None = None,
) -> list[GHLServiceToken]:
    """Tokens whose expiry falls before now + horizon (expired ones included)."""
    horizon = settings.token_refresh_horizon_seconds if within_seconds is None else within_seconds
    cutoff = datetime.now(timezone.utc) + timedelta(seconds=horizon)
    stmt = (
        select(GHLServiceToken)
        .where(GHLServiceToken.expires_at < cutoff)
        .order_by(GHLServiceToken.expires_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_tokens(db: AsyncSession) -> list[GHLServiceToken]:
    stmt = select(GHLServiceToken).order_by(GHLServiceToken.location_id)
    return list((await db.execute(stmt)).scalars().all())


def token_status(record: GHLServiceToken | None) -> dict:
    """Status summary for display; never includes secrets."""
    state = token_state(record)
    if record is None:
        return {"state": state.value, "connected": False}
    return {
        "state": state.value,
        "connected": True,
        "location_id": record.location_id,
        "company_id": record.company_id,
        "expires_at": record.expires_at.isoformat() if record.expires_at else None,
        "expires_in_seconds": record.expires_in_seconds,
        "max_searches_limit": record.max_searches_limit,
    }


async def disconnect_location(db: AsyncSession, location_id: str) -> dict:
    """Revoke server-side state for a location.

    Deletes the token of record and deactivates the location's scheduled
    searches so background jobs stop exporting for it.
    """
    record = await get_token(db, location_id)
    if record is not None:
        await db.delete(record)

    result = await db.execute(
        update(ScheduledSearch)
        .where(ScheduledSearch.ghl_location_id == location_id, ScheduledSearch.active.is_(True))
        .values(active=False)
    )
    await db.commit()

    deactivated = result.rowcount or 0
    logger.info(
        "Disconnected location %s (token_removed=%s, searches_deactivated=%s)",
        location_id, record is not None, deactivated,
    )
    return {
        "location_id": location_id,
        "token_removed": record is not None,
        "searches_deactivated": deactivated,
    }
