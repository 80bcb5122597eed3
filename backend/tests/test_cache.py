import asyncio

import pytest
from sqlalchemy import text

from conftest import SERVICE_DATE, SETTLED_NOW, at, hms, observation, trip
import app.counts.bus_counts as bus_counts_module
import app.counts.snapshot as snapshot_module
from app.core.errors import UpstreamQueryFailure
from app.counts.bus_counts import get_bus_counts
from app.counts.cache import count_cached_snapshots, get_cached_snapshot, put_cached_snapshot
from app.counts.types import SnapshotMetrics


def _metrics(n: int) -> SnapshotMetrics:
    return SnapshotMetrics(
        active_buses=n,
        buses_on_routes=n,
        trips_scheduled=n + 1,
        trips_not_running=1,
        trips_never_ran=0,
        trips_canceled=0,
        trips_still_running=2,
    )


def test_get_missing_key_returns_none(engine):
    assert asyncio.run(get_cached_snapshot(engine, SERVICE_DATE, "08:00:00")) is None


def test_put_is_an_upsert_on_date_and_time(engine):
    async def go():
        await put_cached_snapshot(engine, SERVICE_DATE, "08:00:00", _metrics(5))
        await put_cached_snapshot(engine, SERVICE_DATE, "08:00:00", _metrics(7))
        await put_cached_snapshot(engine, SERVICE_DATE, "25:15:00", _metrics(1))
        return (
            await get_cached_snapshot(engine, SERVICE_DATE, "08:00:00"),
            await get_cached_snapshot(engine, SERVICE_DATE, "25:15:00"),
            await count_cached_snapshots(engine, SERVICE_DATE),
        )

    first, late, count = asyncio.run(go())

    assert first == _metrics(7)
    assert late == _metrics(1)
    assert count == 2


def test_concurrent_puts_of_same_key_converge(engine):
    async def go():
        await asyncio.gather(*(put_cached_snapshot(engine, SERVICE_DATE, "09:00:00", _metrics(3)) for _ in range(5)))
        return await count_cached_snapshots(engine, SERVICE_DATE)

    assert asyncio.run(go()) == 1


@pytest.fixture
def spies(monkeypatch):
    calls = {"compute": 0, "timetable": 0}

    real_compute = bus_counts_module.compute_snapshot
    real_resolve = snapshot_module.resolve_timetable_version

    async def counting_compute(*args, **kwargs):
        calls["compute"] += 1
        return await real_compute(*args, **kwargs)

    async def counting_resolve(*args, **kwargs):
        calls["timetable"] += 1
        return await real_resolve(*args, **kwargs)

    monkeypatch.setattr(bus_counts_module, "compute_snapshot", counting_compute)
    monkeypatch.setattr(snapshot_module, "resolve_timetable_version", counting_resolve)
    return calls


def test_settled_instant_is_computed_once_then_served_from_cache(engine, settings, seeded_schedule, seed, spies):
    seed(
        trip("T1", hms(8, 0), hms(8, 30)),
        observation("4001", at(SERVICE_DATE, 8, 1), trip_id="T1", next_stop_id="S1"),
    )
    instant = at(SERVICE_DATE, 8, 2)

    async def go():
        first = await get_bus_counts(engine, instant, settings=settings, now=SETTLED_NOW)
        second = await get_bus_counts(engine, instant, settings=settings, now=SETTLED_NOW)
        cached = await get_cached_snapshot(engine, SERVICE_DATE, "08:02:00")
        return first, second, cached

    first, second, cached = asyncio.run(go())

    assert first == second == cached
    assert first.trips_scheduled == 1
    assert spies == {"compute": 1, "timetable": 1}


def test_post_midnight_instant_is_cached_under_previous_service_day(engine, settings, seeded_schedule, seed):
    seed(trip("OWL", hms(25, 0), hms(25, 40)))
    instant = at(SERVICE_DATE.replace(day=3), 1, 15)

    asyncio.run(get_bus_counts(engine, instant, settings=settings, now=SETTLED_NOW))

    cached = asyncio.run(get_cached_snapshot(engine, SERVICE_DATE, "25:15:00"))
    assert cached is not None
    assert cached.trips_scheduled == 1


def test_live_day_is_never_cached(engine, settings, seeded_schedule, seed, spies):
    seed(trip("T1", hms(8, 0), hms(8, 30)))
    now = at(SERVICE_DATE, 12, 0)
    instant = at(SERVICE_DATE, 8, 15)

    async def go():
        await get_bus_counts(engine, instant, settings=settings, now=now)
        await get_bus_counts(engine, instant, settings=settings, now=now)
        return await count_cached_snapshots(engine, SERVICE_DATE)

    assert asyncio.run(go()) == 0
    assert spies["compute"] == 2


def test_yesterday_is_not_cached(engine, settings, seeded_schedule, seed):
    seed(trip("T1", hms(8, 0), hms(8, 30)))
    now = at(SERVICE_DATE.replace(day=3), 12, 0)

    asyncio.run(get_bus_counts(engine, at(SERVICE_DATE, 8, 15), settings=settings, now=now))

    assert asyncio.run(count_cached_snapshots(engine, SERVICE_DATE)) == 0


def test_failed_snapshot_writes_no_cache_entry(engine, settings, seeded_schedule, seed):
    seed(trip("T1", hms(8, 0), hms(8, 30)))

    async def go():
        async with engine.begin() as conn:
            await conn.execute(text("DROP TABLE canceled"))
        with pytest.raises(UpstreamQueryFailure):
            await get_bus_counts(engine, at(SERVICE_DATE, 8, 15), settings=settings, now=SETTLED_NOW)
        return await count_cached_snapshots(engine, SERVICE_DATE)

    assert asyncio.run(go()) == 0
