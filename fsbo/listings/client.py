"""Listing search client - FSBO-only property search via a RapidAPI host.

Pages through ``/search`` with owner-listing flags set, then calls
``/propertyV2`` per result to confirm the FSBO flag and pull the owner's
phone, year built and county.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Protocol

import httpx

from ..config import settings
from ..schemas.property import NOT_AVAILABLE, ListingAgent, PropertyRecord, SearchParams

logger = logging.getLogger(__name__)

PROPERTY_TYPE_FLAGS = {
    "Houses": "isSingleFamily",
    "Apartments": "isApartment",
    "Condos": "isCondo",
    "Townhomes": "isTownhouse",
    "Manufactured": "isManufactured",
    "Lots/Land": "isLotLand",
    "Multi-family": "isMultiFamily",
}


class ListingSearchError(Exception):
    """Listing API request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PropertySource(Protocol):
    """Anything that can turn stored search params into FSBO property records."""

    async def search(self, params: SearchParams) -> list[PropertyRecord]: ...


def property_type_flags(home_types: list[str]) -> dict[str, str]:
    """All flags true when nothing is selected, else only the selected ones."""
    selected = {PROPERTY_TYPE_FLAGS[t] for t in home_types if t in PROPERTY_TYPE_FLAGS}
    return {
        flag: "true" if (not selected or flag in selected) else "false"
        for flag in PROPERTY_TYPE_FLAGS.values()
    }


def build_search_query(params: SearchParams, page: int) -> dict[str, str]:
    query = {
        "location": f"{params.location}, {params.state}",
        "status": "forSale",
        "page": str(page),
        "price_min": params.min_price or "0",
        "price_max": params.max_price or "10000000",
        "beds_min": params.beds or "0",
        "baths_min": params.baths or "0",
        "sqft_min": params.min_sqft or "0",
        "sqft_max": params.max_sqft or "10000000",
        "built_min": params.min_year or "1800",
        "built_max": params.max_year or str(date.today().year),
        "listing_type": "by_owner_other",
        "isForSaleByOwner": "true",
        "isForSaleByAgent": "false",
        "isComingSoon": "false",
        "isForSaleForeclosure": "false",
        "isAuction": "false",
        "isNewConstruction": "false",
    }
    query.update(property_type_flags(params.home_type))
    return query


def map_listing(raw: dict[str, Any]) -> PropertyRecord:
    """Map a raw search hit into a PropertyRecord."""
    street = raw.get("streetAddress") or ""
    city = raw.get("city") or ""
    state = raw.get("state") or ""
    zipcode = raw.get("zipcode") or ""
    zpid = raw.get("zpid")
    slug = f"{street}-{city}-{state}-{zipcode}".replace(" ", "-")
    agent = raw.get("listingAgent") or {}
    office = raw.get("listingOffice") or {}

    return PropertyRecord(
        id=str(zpid),
        address=street,
        city=city,
        state=state,
        zipCode=str(zipcode),
        county=raw.get("county"),
        price=raw.get("price") or 0,
        beds=raw.get("bedrooms") or 0,
        baths=raw.get("bathrooms") or 0,
        sqft=raw.get("livingArea") or 0,
        propertyType=raw.get("homeType"),
        yearBuilt=raw.get("yearBuilt") or None,
        zillowLink=f"https://www.zillow.com/homedetails/{slug}/{zpid}_zpid/",
        imageUrl=raw.get("imgSrc"),
        listingAgent=ListingAgent(
            name=agent.get("name") or NOT_AVAILABLE,
            brokerName=office.get("name") or NOT_AVAILABLE,
            phone=agent.get("phone") or NOT_AVAILABLE,
            email=agent.get("email") or NOT_AVAILABLE,
        ),
    )


def extract_owner_phone(detail: dict[str, Any]) -> str:
    """Owner phone lives in listedBy[0].elements[] under id "PHONE"."""
    listed_by = detail.get("listedBy")
    if isinstance(listed_by, list) and listed_by and isinstance(listed_by[0], dict):
        for element in listed_by[0].get("elements") or []:
            if isinstance(element, dict) and element.get("id") == "PHONE" and element.get("text"):
                return str(element["text"])
    return NOT_AVAILABLE


def is_fsbo(detail: dict[str, Any]) -> bool:
    sub_type = detail.get("listing_sub_type") or {}
    agent = detail.get("listingAgent") or {}
    return sub_type.get("is_FSBO") is True or agent.get("brokerName") == "For Sale By Owner"


class ListingSearchClient:
    """Async client for the listing search API.

    Usage:
        async with ListingSearchClient.from_settings() as listings:
            properties = await listings.search(SearchParams(location="Austin", state="TX"))
    """

    def __init__(
        self,
        host: str,
        api_key: str,
        page_delay: float | None = None,
        detail_delay: float | None = None,
        max_pages: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.host = host
        self.page_delay = settings.listing_page_delay_seconds if page_delay is None else page_delay
        self.detail_delay = settings.listing_detail_delay_seconds if detail_delay is None else detail_delay
        self.max_pages = max_pages or settings.listing_max_pages
        self._client = httpx.AsyncClient(
            base_url=f"https://{host}",
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host},
            timeout=settings.ghl_timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "ListingSearchClient":
        if not settings.listing_api_configured:
            raise ListingSearchError("Listing API not configured. Set FSBO_LISTING_API_HOST/KEY.")
        return cls(settings.listing_api_host, settings.listing_api_key, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        response = await self._client.get(path, params=params)
        if response.is_error:
            raise ListingSearchError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                response.status_code,
            )
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def search_page(self, params: SearchParams, page: int) -> tuple[list[PropertyRecord], int]:
        data = await self._get("/search", build_search_query(params, page))
        results = [
            map_listing(r) for r in data.get("results") or [] if isinstance(r, dict) and r.get("zpid")
        ]
        return results, int(data.get("totalPages") or 1)

    async def fetch_owner_details(self, property_id: str) -> dict[str, Any] | None:
        """FSBO owner details, or None when the listing is not FSBO or lookup fails."""
        if self.detail_delay > 0:
            await asyncio.sleep(self.detail_delay)
        try:
            detail = await self._get("/propertyV2", {"zpid": property_id})
        except (ListingSearchError, httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch property details for %s: %s", property_id, e)
            return None

        if not is_fsbo(detail):
            return None

        return {
            "phone": extract_owner_phone(detail),
            "year_built": detail.get("yearBuilt") or None,
            "county": detail.get("county") or NOT_AVAILABLE,
        }

    async def search(self, params: SearchParams) -> list[PropertyRecord]:
        """All FSBO properties matching ``params``, owner details merged in."""
        found: list[PropertyRecord] = []
        total_pages = 1
        page = 1
        while page <= min(total_pages, self.max_pages):
            results, reported_pages = await self.search_page(params, page)
            if page == 1:
                total_pages = reported_pages
            if not results:
                break
            found.extend(results)
            page += 1
            if page <= total_pages and self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

        fsbo: list[PropertyRecord] = []
        for prop in found:
            details = await self.fetch_owner_details(prop.id)
            if details is None:
                continue
            prop.listing_agent = ListingAgent(
                name="Property Owner",
                brokerName="For Sale By Owner",
                phone=details["phone"],
                email=NOT_AVAILABLE,
            )
            prop.year_built = details["year_built"]
            prop.county = details["county"]
            fsbo.append(prop)

        logger.info(
            "Listing search %s, %s: %d results, %d FSBO",
            params.location, params.state, len(found), len(fsbo),
        )
        return fsbo
