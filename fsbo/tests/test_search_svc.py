"""Tests for scheduled search CRUD, quota guard and due selection."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fsbo.errors import QuotaExceededError
from fsbo.models.scheduled_search import ScheduledSearch
from fsbo.models.token import as_utc
from fsbo.services import search_svc
from fsbo.tests.conftest import LOCATION_ID, make_property

PARAMS = {"location": "Austin", "state": "TX"}


async def _seed_active(db, count: int, location_id: str = LOCATION_ID) -> None:
    now = datetime.now(timezone.utc)
    for i in range(count):
        db.add(ScheduledSearch(
            ghl_location_id=location_id,
            search_params=PARAMS,
            frequency_days=1,
            next_run=now + timedelta(days=i + 1),
        ))
    await db.commit()


@pytest.mark.asyncio
async def test_create_sets_next_run(db, token):
    before = datetime.now(timezone.utc)
    search = await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)

    assert search.active is True
    assert search.last_run is None
    assert search.search_params == PARAMS
    assert as_utc(search.next_run) >= before + timedelta(days=7) - timedelta(seconds=1)


@pytest.mark.asyncio
async def test_quota_at_limit_rejects(db, token):
    token.max_searches_limit = 3
    await db.commit()
    await _seed_active(db, 3)

    with pytest.raises(QuotaExceededError) as exc_info:
        await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)

    assert exc_info.value.limit == 3
    assert "Maximum limit of 3" in str(exc_info.value)
    assert await search_svc.count_active_searches(db, LOCATION_ID) == 3


@pytest.mark.asyncio
async def test_quota_below_limit_allows_one_more(db, token):
    token.max_searches_limit = 3
    await db.commit()
    await _seed_active(db, 2)

    await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)
    assert await search_svc.count_active_searches(db, LOCATION_ID) == 3

    with pytest.raises(QuotaExceededError):
        await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)


@pytest.mark.asyncio
async def test_inactive_searches_do_not_count(db, token):
    token.max_searches_limit = 1
    await db.commit()
    db.add(ScheduledSearch(
        ghl_location_id=LOCATION_ID, search_params=PARAMS, frequency_days=1, active=False,
    ))
    await db.commit()

    await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 1)


@pytest.mark.asyncio
async def test_quota_is_per_location(db, token):
    token.max_searches_limit = 1
    await db.commit()
    await _seed_active(db, 5, location_id="other-location")

    await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 1)


@pytest.mark.asyncio
async def test_reactivation_rechecks_quota(db, token):
    token.max_searches_limit = 1
    await db.commit()
    await _seed_active(db, 1)
    paused = ScheduledSearch(
        ghl_location_id=LOCATION_ID, search_params=PARAMS, frequency_days=1, active=False,
    )
    db.add(paused)
    await db.commit()

    with pytest.raises(QuotaExceededError):
        await search_svc.update_scheduled_search(db, paused.id, LOCATION_ID, active=True)


@pytest.mark.asyncio
async def test_reactivation_below_limit_succeeds(db, token):
    token.max_searches_limit = 2
    await db.commit()
    await _seed_active(db, 1)
    paused = ScheduledSearch(
        ghl_location_id=LOCATION_ID, search_params=PARAMS, frequency_days=1, active=False,
    )
    db.add(paused)
    await db.commit()

    resumed = await search_svc.update_scheduled_search(db, paused.id, LOCATION_ID, active=True)

    assert resumed.active is True
    assert await search_svc.count_active_searches(db, LOCATION_ID) == 2


@pytest.mark.asyncio
async def test_rejected_reactivation_leaves_search_paused(db, token):
    token.max_searches_limit = 1
    await db.commit()
    await _seed_active(db, 1)
    paused = ScheduledSearch(
        ghl_location_id=LOCATION_ID, search_params=PARAMS, frequency_days=1, active=False,
    )
    db.add(paused)
    await db.commit()
    paused_id = paused.id

    with pytest.raises(QuotaExceededError):
        await search_svc.update_scheduled_search(
            db, paused_id, LOCATION_ID, active=True, frequency_days=9,
        )

    reloaded = await search_svc.get_scheduled_search(db, paused_id, LOCATION_ID)
    assert reloaded.active is False
    assert reloaded.frequency_days == 1
    assert await search_svc.count_active_searches(db, LOCATION_ID) == 1


@pytest.mark.asyncio
async def test_update_stores_next_run_in_utc(db, token):
    search = await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)
    local = datetime(2026, 10, 20, 10, 0, tzinfo=timezone(timedelta(hours=2)))

    updated = await search_svc.update_scheduled_search(db, search.id, LOCATION_ID, next_run=local)

    assert as_utc(updated.next_run) == datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
    due = await search_svc.list_due_searches(
        db, now=datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc),
    )
    assert [s.id for s in due] == [search.id]


@pytest.mark.asyncio
async def test_update_is_tenant_scoped(db, token):
    search = await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)
    assert await search_svc.update_scheduled_search(db, search.id, "intruder", frequency_days=1) is None
    assert await search_svc.delete_scheduled_search(db, search.id, "intruder") is False

    updated = await search_svc.update_scheduled_search(db, search.id, LOCATION_ID, frequency_days=3)
    assert updated.frequency_days == 3


@pytest.mark.asyncio
async def test_list_due_searches_orders_by_next_run(db):
    now = datetime.now(timezone.utc)
    rows = [
        ScheduledSearch(ghl_location_id="a", search_params=PARAMS, frequency_days=1,
                        next_run=now - timedelta(hours=1)),
        ScheduledSearch(ghl_location_id="b", search_params=PARAMS, frequency_days=1,
                        next_run=now - timedelta(days=2)),
        ScheduledSearch(ghl_location_id="c", search_params=PARAMS, frequency_days=1,
                        next_run=now + timedelta(hours=1)),
        ScheduledSearch(ghl_location_id="d", search_params=PARAMS, frequency_days=1,
                        next_run=now - timedelta(days=5), active=False),
    ]
    db.add_all(rows)
    await db.commit()

    due = await search_svc.list_due_searches(db, now=now)
    assert [s.ghl_location_id for s in due] == ["b", "a"]

    first = await search_svc.list_due_searches(db, now=now, limit=1)
    assert [s.ghl_location_id for s in first] == ["b"]


@pytest.mark.asyncio
async def test_mark_search_run_advances_cadence(db, token):
    search = await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    await search_svc.mark_search_run(db, search, now=now)

    assert search.last_run == now
    assert search.next_run == now + timedelta(days=7)


@pytest.mark.asyncio
async def test_save_and_list_search_results(db, token):
    search = await search_svc.create_scheduled_search(db, LOCATION_ID, PARAMS, 7)
    props = [make_property(1), make_property(2)]

    rows = await search_svc.save_search_results(db, search.id, LOCATION_ID, props)

    assert [r.property_id for r in rows] == ["1001", "1002"]
    assert not any(r.exported_to_ghl for r in rows)
    listed = await search_svc.list_search_results(db, LOCATION_ID, search_id=search.id)
    assert len(listed) == 2
    assert await search_svc.list_search_results(db, "other-location") == []
