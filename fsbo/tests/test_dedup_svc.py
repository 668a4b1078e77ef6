"""Tests for phone-based contact deduplication."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fsbo.services.dedup_svc import find_existing_contact, normalize_phone


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(512) 555-0100", "+15125550100"),
        ("512.555.0100", "+15125550100"),
        ("+1 512 555 0100", "+15125550100"),
        ("44 20 7946 0958", "+442079460958"),
        ("N/A", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.asyncio
async def test_find_existing_contact_searches_by_normalized_phone():
    ghl = AsyncMock()
    ghl.contacts.search.return_value = {"contacts": [{"id": "c1", "tags": ["FSBO"]}]}

    found = await find_existing_contact(ghl, "loc1", "Owner", "(512) 555-0100")

    assert found == {"id": "c1", "tags": ["FSBO"]}
    ghl.contacts.search.assert_awaited_once_with(
        filters=[{"field": "phone", "operator": "eq", "value": "+15125550100"}],
        page=1,
        page_limit=1,
        location_id="loc1",
    )


@pytest.mark.asyncio
async def test_no_phone_skips_search():
    ghl = AsyncMock()
    assert await find_existing_contact(ghl, "loc1", "Owner", "N/A") is None
    ghl.contacts.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_failure_fails_open():
    ghl = AsyncMock()
    ghl.contacts.search.side_effect = RuntimeError("boom")
    assert await find_existing_contact(ghl, "loc1", "Owner", "5125550100") is None


@pytest.mark.asyncio
async def test_search_failure_strict_propagates():
    ghl = AsyncMock()
    ghl.contacts.search.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        await find_existing_contact(ghl, "loc1", "Owner", "5125550100", strict=True)


@pytest.mark.asyncio
async def test_empty_result_is_no_match():
    ghl = AsyncMock()
    ghl.contacts.search.return_value = {"contacts": []}
    assert await find_existing_contact(ghl, "loc1", "Owner", "5125550100") is None
