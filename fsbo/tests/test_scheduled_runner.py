"""Tests for the scheduled search runner job."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from fsbo.jobs import run_scheduled_searches
from fsbo.models.scheduled_search import ScheduledSearch
from fsbo.models.search_result import SearchResult
from fsbo.models.token import as_utc
from fsbo.tests.conftest import LOCATION_ID, FakeCRM, FakeSource, make_property

PARAMS = {"location": "Austin", "state": "TX", "homeType": ["Houses"]}


async def _due_search(db, location_id: str = LOCATION_ID, frequency_days: int = 7, hours_ago: int = 24):
    search = ScheduledSearch(
        ghl_location_id=location_id,
        search_params=PARAMS,
        frequency_days=frequency_days,
        next_run=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
    )
    db.add(search)
    await db.commit()
    return search


@pytest.mark.asyncio
async def test_end_to_end_weekly_search(db, token, crm):
    search = await _due_search(db)
    source = FakeSource([make_property(1), make_property(2), make_property(3)])
    now = datetime.now(timezone.utc)

    report = await run_scheduled_searches(
        db, source, client_factory=crm.factory, delay_seconds=0, now=now,
    )

    assert report.status_code == 200
    assert report.body["total_searches"] == 1
    assert report.body["processed"] == 1
    assert report.body["errors"] == 0
    detail = report.body["details"][0]
    assert detail["properties_found"] == 3
    assert detail["properties_exported"] == 3

    rows = (await db.execute(select(SearchResult))).scalars().all()
    assert len(rows) == 3
    assert all(r.exported_to_ghl for r in rows)
    assert all(r.search_id == search.id for r in rows)

    refreshed = (await db.execute(select(ScheduledSearch))).scalar_one()
    assert as_utc(refreshed.last_run) == now
    assert as_utc(refreshed.next_run) == now + timedelta(days=7)
    assert source.params_seen[0].home_type == ["Houses"]


@pytest.mark.asyncio
async def test_reschedules_when_every_export_fails(db, token):
    await _due_search(db, frequency_days=3)
    props = [make_property(1), make_property(2)]
    crm = FakeCRM(fail_addresses={p.address for p in props})
    now = datetime.now(timezone.utc)

    report = await run_scheduled_searches(
        db, FakeSource(props), client_factory=crm.factory, delay_seconds=0, now=now,
    )

    assert report.status_code == 200
    assert report.body["errors"] == 2
    search = (await db.execute(select(ScheduledSearch))).scalar_one()
    assert as_utc(search.next_run) == as_utc(search.last_run) + timedelta(days=3)
    rows = (await db.execute(select(SearchResult))).scalars().all()
    assert len(rows) == 2
    assert not any(r.exported_to_ghl for r in rows)


@pytest.mark.asyncio
async def test_missing_token_counts_errors_and_reschedules(db, crm):
    await _due_search(db, location_id="not-connected")
    now = datetime.now(timezone.utc)

    report = await run_scheduled_searches(
        db, FakeSource([make_property(1)]), client_factory=crm.factory, delay_seconds=0, now=now,
    )

    assert report.status_code == 200
    assert report.body["details"][0]["export_errors"] == 1
    assert crm.calls == []
    search = (await db.execute(select(ScheduledSearch))).scalar_one()
    assert as_utc(search.next_run) == now + timedelta(days=7)


@pytest.mark.asyncio
async def test_source_failure_still_reschedules(db, token, crm):
    await _due_search(db)
    now = datetime.now(timezone.utc)

    report = await run_scheduled_searches(
        db, FakeSource(error=RuntimeError("listing API down")), client_factory=crm.factory, now=now,
    )

    assert report.status_code == 200
    assert report.body["processed"] == 0
    assert report.body["errors"] == 1
    assert report.body["details"][0]["error"] == "listing API down"
    search = (await db.execute(select(ScheduledSearch))).scalar_one()
    assert as_utc(search.next_run) == now + timedelta(days=7)


@pytest.mark.asyncio
async def test_background_variant_runs_one_oldest_search(db, token, crm):
    older = await _due_search(db, hours_ago=48)
    newer = await _due_search(db, hours_ago=1)

    report = await run_scheduled_searches(db, FakeSource([]), client_factory=crm.factory)

    assert report.body["total_searches"] == 1
    assert report.body["details"][0]["search_id"] == str(older.id)
    assert str(newer.id) not in str(report.body)


@pytest.mark.asyncio
async def test_drain_variant_runs_every_due_search(db, token, crm):
    await _due_search(db, hours_ago=48)
    await _due_search(db, hours_ago=1)

    report = await run_scheduled_searches(db, FakeSource([]), limit=None, client_factory=crm.factory)

    assert report.body["total_searches"] == 2
    assert report.body["processed"] == 2


@pytest.mark.asyncio
async def test_nothing_due(db):
    report = await run_scheduled_searches(db, FakeSource([]))
    assert report.status_code == 200
    assert report.body["message"] == "No scheduled searches due to run"
    assert report.body["total_searches"] == 0
