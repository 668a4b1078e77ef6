"""GHL API Client - contacts endpoints used by the lead export pipeline."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings
from .rate_limit import DailyLimitExceeded, RequestBudget, ghl_request_budget

logger = logging.getLogger(__name__)


class GHLError(Exception):
    """Base exception for GHL API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class GHLAuthError(GHLError):
    """Authentication error."""

    pass


class GHLRateLimitError(GHLError):
    """Rate limit exceeded."""

    pass


def _json_or_none(response: httpx.Response) -> dict | None:
    if not response.content:
        return None
    try:
        data = response.json()
    except ValueError:
        return {"raw_response": response.text[:500]}
    return data if isinstance(data, dict) else {"data": data}


class GHLClient:
    """GoHighLevel API client scoped to one location's access token.

    Usage:
        async with GHLClient(access_token, location_id) as ghl:
            found = await ghl.contacts.search(filters=[...], page_limit=1)
            contact = await ghl.contacts.create(firstName="FSBO", ...)
    """

    def __init__(
        self,
        access_token: str,
        location_id: str,
        base_url: str | None = None,
        budget: RequestBudget | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        if not access_token:
            raise GHLAuthError("Access token required")

        self.location_id = location_id
        self.base_url = base_url or settings.ghl_api_base
        self.budget = budget or ghl_request_budget

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Version": settings.ghl_api_version,
            },
            timeout=timeout or settings.ghl_timeout_seconds,
            transport=transport,
        )

        self.contacts = ContactsClient(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict[str, Any]:
        """Make an API request with rate limiting and error handling."""
        try:
            await self.budget.acquire(self.location_id)
        except DailyLimitExceeded as e:
            raise GHLRateLimitError(str(e), 429) from e

        response = await self._client.request(method=method, url=path, params=params, json=json)

        if response.status_code == 401:
            raise GHLAuthError("Invalid API key or token expired", 401, _json_or_none(response))

        if response.status_code == 429:
            raise GHLRateLimitError(
                "Rate limit exceeded. Wait and retry.",
                429,
                _json_or_none(response),
            )

        if response.is_error:
            body = _json_or_none(response)
            logger.warning("GHL %s %s failed: %s %s", method, path, response.status_code, body)
            raise GHLError(f"API error: {response.status_code}", response.status_code, body)

        return _json_or_none(response) or {}


class ContactsClient:
    """Contacts API operations."""

    def __init__(self, client: GHLClient):
        self._client = client

    async def search(
        self,
        filters: list[dict[str, Any]],
        page: int = 1,
        page_limit: int = 20,
        location_id: str | None = None,
    ) -> dict:
        """Search contacts with field filters.

        Returns:
            {"contacts": [...], "total": N}
        """
        return await self._client._request(
            "POST",
            "/contacts/search",
            json={
                "locationId": location_id or self._client.location_id,
                "page": page,
                "pageLimit": page_limit,
                "filters": filters,
            },
        )

    async def create(self, **payload) -> dict:
        """Create a new contact."""
        data = {"locationId": self._client.location_id, **payload}
        return await self._client._request("POST", "/contacts/", json=data)

    async def update(self, contact_id: str, **payload) -> dict:
        """Update a contact. GHL rejects locationId on update."""
        payload.pop("locationId", None)
        return await self._client._request("PUT", f"/contacts/{contact_id}", json=payload)


def extract_contact_id(resp: dict[str, Any] | None) -> str:
    """Pull the contact id out of a create or update response."""
    if not isinstance(resp, dict):
        return ""
    contact = resp.get("contact", resp)
    if isinstance(contact, dict):
        for key in ("id", "_id"):
            value = contact.get(key)
            if isinstance(value, str) and value:
                return value
    return ""
