"""Manual export of selected properties to a location's GHL account."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..oauth.client import OAuthClient
from ..schemas.export import ExportRequest
from ..services.export_svc import ClientFactory, export_properties
from .deps import get_client_factory, get_oauth_client

router = APIRouter(prefix="/api/locations/{location_id}", tags=["exports"])


@router.post("/exports")
async def export_selected(
    location_id: str,
    body: ExportRequest,
    db: AsyncSession = Depends(get_db),
    oauth: OAuthClient | None = Depends(get_oauth_client),
    client_factory: ClientFactory | None = Depends(get_client_factory),
):
    search_id = None
    if body.search_id:
        try:
            search_id = uuid.UUID(body.search_id)
        except ValueError as e:
            raise HTTPException(status_code=422, detail="Invalid search_id") from e

    result = await export_properties(
        db,
        body.properties,
        location_id,
        search_id=search_id,
        oauth=oauth,
        client_factory=client_factory,
    )
    return result.summary()
