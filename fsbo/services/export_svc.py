"""Lead exporter: FSBO property -> GHL contact.

Each property becomes exactly one contact create or update call, followed by
an audit row in ``search_results``. Batches run strictly sequentially with a
fixed delay between items; that spacing, together with the client's request
budget, is what keeps a batch under GHL's burst ceiling.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import date
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import ExportItemError, StorageWriteError
from ..ghl.client import GHLClient, extract_contact_id
from ..models.search_result import SearchResult
from ..oauth.client import OAuthClient
from ..schemas.export import BatchResult, ExportErrorDetail
from ..schemas.property import NOT_AVAILABLE, PropertyRecord
from . import token_svc
from .dedup_svc import find_existing_contact, normalize_phone

logger = logging.getLogger(__name__)

BASE_TAGS = ("ai-fsbo-finder", "FSBO", "for-sale-by-owner")

ProgressCallback = Callable[[int, int], Any]
ClientFactory = Callable[[str, str], GHLClient]


def dedup_tag(today: date | None = None) -> str:
    """Same-day tag, e.g. ``fsbo-10/18/2026``."""
    d = today or date.today()
    return f"fsbo-{d.month}/{d.day}/{d.year}"


def _clean_tag(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == NOT_AVAILABLE:
        return None
    return text


def merge_tags(existing: Sequence[str] | None, new: Sequence[str]) -> list[str]:
    """Order-preserving set union; existing tags are never dropped."""
    merged: list[str] = []
    seen: set[str] = set()
    for tag in [*(existing or []), *new]:
        if isinstance(tag, str) and tag and tag not in seen:
            seen.add(tag)
            merged.append(tag)
    return merged


def build_contact_payload(prop: PropertyRecord, today: date | None = None) -> dict[str, Any]:
    """Deterministic GHL contact body for one property."""
    address = prop.address or ""
    tags = [*BASE_TAGS]
    for extra in (prop.property_type, prop.city, prop.state, prop.county):
        tag = _clean_tag(extra)
        if tag:
            tags.append(tag)
    tags.append(dedup_tag(today))

    return {
        "firstName": "FSBO",
        "lastName": address.split(",")[0],
        "name": f"FSBO - {address}",
        "phone": normalize_phone(prop.listing_agent.phone),
        "address1": address,
        "city": prop.city,
        "state": prop.state,
        "postalCode": prop.zip_code,
        "website": prop.zillow_link,
        "country": "US",
        "companyName": "For Sale By Owner",
        "source": settings.contact_source,
        "tags": merge_tags([], tags),
    }


async def record_export(
    db: AsyncSession,
    prop: PropertyRecord,
    location_id: str,
    contact_id: str,
    *,
    search_id: uuid.UUID | None = None,
    result_row: SearchResult | None = None,
) -> SearchResult:
    """Write the audit row for a successful export.

    Raises:
        StorageWriteError: If the row could not be persisted
    """
    try:
        if result_row is None:
            result_row = SearchResult(
                search_id=search_id,
                ghl_location_id=location_id,
                property_data=prop.snapshot(),
            )
            db.add(result_row)
        result_row.exported_to_ghl = True
        result_row.ghl_contact_id = contact_id or None
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageWriteError(f"Failed to store search result: {e}", location_id) from e
    return result_row


async def export_property(
    db: AsyncSession,
    ghl,
    prop: PropertyRecord,
    location_id: str,
    *,
    search_id: uuid.UUID | None = None,
    result_row: SearchResult | None = None,
    today: date | None = None,
) -> str:
    """Create or update the GHL contact for ``prop`` and audit it.

    Returns:
        The GHL contact id

    Raises:
        ExportItemError: If the CRM side of the export failed
    """
    agent = prop.listing_agent
    try:
        existing = await find_existing_contact(ghl, location_id, agent.name, agent.phone)
        payload = build_contact_payload(prop, today)

        if existing:
            contact_id = str(existing.get("id") or existing.get("_id") or "")
            if not contact_id:
                raise ExportItemError(prop.id, "Matched contact has no id", location_id)
            payload["tags"] = merge_tags(existing.get("tags"), payload["tags"])
            await ghl.contacts.update(contact_id, **payload)
            logger.info("Updated contact %s for property %s", contact_id, prop.id)
        else:
            resp = await ghl.contacts.create(**payload)
            contact_id = extract_contact_id(resp)
            if not contact_id:
                raise ExportItemError(prop.id, "Contact created but no id returned", location_id)
            logger.info("Created contact %s for property %s", contact_id, prop.id)
    except ExportItemError:
        raise
    except Exception as e:
        raise ExportItemError(prop.id, str(e) or type(e).__name__, location_id) from e

    try:
        await record_export(
            db, prop, location_id, contact_id, search_id=search_id, result_row=result_row,
        )
    except StorageWriteError as e:
        # CRM write stands; audit row is lost.
        logger.error("Property %s exported as %s but audit failed: %s", prop.id, contact_id, e)

    return contact_id


async def export_properties(
    db: AsyncSession,
    properties: Sequence[PropertyRecord],
    location_id: str,
    *,
    search_id: uuid.UUID | None = None,
    result_rows: Sequence[SearchResult] | None = None,
    oauth: OAuthClient | None = None,
    progress: ProgressCallback | None = None,
    delay_seconds: float | None = None,
    deadline_seconds: float | None = None,
    item_timeout_seconds: float | None = None,
    client_factory: ClientFactory | None = None,
) -> BatchResult:
    """Export a batch sequentially; one item's failure never aborts the rest.

    Raises:
        AuthRequiredError: If the location has no valid token (nothing exported)
    """
    access_token = await token_svc.get_valid_token(db, location_id, oauth=oauth)

    delay = settings.export_delay_seconds if delay_seconds is None else delay_seconds
    item_timeout = (
        settings.export_item_timeout_seconds if item_timeout_seconds is None else item_timeout_seconds
    )
    factory = client_factory or GHLClient
    result = BatchResult(total=len(properties))
    started = time.monotonic()

    async with factory(access_token, location_id) as ghl:
        for index, prop in enumerate(properties):
            if deadline_seconds is not None and time.monotonic() - started >= deadline_seconds:
                remaining = properties[index:]
                result.timed_out = len(remaining)
                result.errors.extend(
                    ExportErrorDetail(property_id=p.id, error="Batch deadline exceeded")
                    for p in remaining
                )
                logger.warning(
                    "Export deadline reached for %s; %d of %d properties not attempted",
                    location_id, len(remaining), result.total,
                )
                break

            row = result_rows[index] if result_rows is not None else None
            try:
                contact_id = await asyncio.wait_for(
                    export_property(
                        db, ghl, prop, location_id, search_id=search_id, result_row=row,
                    ),
                    timeout=item_timeout or None,
                )
                result.exported += 1
                result.contact_ids.append(contact_id)
            except asyncio.TimeoutError:
                await db.rollback()
                logger.warning("Export of property %s timed out", prop.id)
                result.errors.append(ExportErrorDetail(property_id=prop.id, error="Export timed out"))
            except ExportItemError as e:
                logger.warning("Export of property %s failed: %s", prop.id, e)
                result.errors.append(ExportErrorDetail(property_id=prop.id, error=str(e)))
            except Exception as e:
                logger.exception("Unexpected error exporting property %s", prop.id)
                result.errors.append(ExportErrorDetail(property_id=prop.id, error=str(e)))

            if progress is not None:
                progress(index + 1, result.total)

            if delay > 0 and index < len(properties) - 1:
                await asyncio.sleep(delay)

    logger.info(
        "Export batch for %s finished: %d/%d exported (%s)",
        location_id, result.exported, result.total, result.status,
    )
    return result
