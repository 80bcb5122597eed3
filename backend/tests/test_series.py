import asyncio
from datetime import timedelta

import pytest

from conftest import SERVICE_DATE, SETTLED_NOW, at, hms, observation, trip
import app.counts.series as series_module
from app.core.errors import UpstreamQueryFailure
from app.counts.cache import count_cached_snapshots, get_cached_snapshot
from app.counts.series import build_series, series_times
from app.counts.types import SnapshotMetrics
from app.schedule.service_time import instant_to_service_seconds, service_time_to_seconds, seconds_since_service_day_start


def _metrics(n: int) -> SnapshotMetrics:
    return SnapshotMetrics(n, n, n, 0, 0, 0, 0)


def test_historical_day_covers_0300_to_2645(settings):
    times = series_times(SERVICE_DATE, settings=settings, now=SETTLED_NOW)

    assert times[0] == "03:00:00"
    assert times[-1] == "26:45:00"
    assert len(times) == 96
    seconds = [service_time_to_seconds(t) for t in times]
    assert all(b - a == 15 * 60 for a, b in zip(seconds, seconds[1:]))


def test_current_day_stops_fifteen_minutes_before_now(settings):
    now = at(SERVICE_DATE, 10, 7)

    times = series_times(SERVICE_DATE, settings=settings, now=now)

    assert times[0] == "03:00:00"
    assert times[-1] == "09:45:00"
    assert service_time_to_seconds(times[-1]) <= instant_to_service_seconds(now - timedelta(minutes=15), settings.tz)


def test_current_day_after_midnight_extends_past_24(settings):
    now = at(SERVICE_DATE.replace(day=3), 1, 30)

    times = series_times(SERVICE_DATE, settings=settings, now=now)

    limit = seconds_since_service_day_start(now - timedelta(minutes=15), SERVICE_DATE, settings.tz)
    assert times[-1] == "25:00:00"
    assert service_time_to_seconds(times[-1]) <= limit


def test_current_day_right_after_rollover_is_empty(settings):
    assert series_times(SERVICE_DATE, settings=settings, now=at(SERVICE_DATE, 3, 5)) == []


def test_future_day_is_empty(settings):
    assert series_times(SERVICE_DATE.replace(day=20), settings=settings, now=SETTLED_NOW) == []


def test_results_are_ordered_even_when_completed_out_of_order(settings, monkeypatch):
    in_flight = 0
    peak = 0

    async def fake_counts(engine, instant, *, settings, now=None):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        # later points finish first
        s = seconds_since_service_day_start(instant, SERVICE_DATE, settings.tz)
        await asyncio.sleep((27 * 3600 - s) / 3_000_000)
        in_flight -= 1
        return _metrics(s)

    monkeypatch.setattr(series_module, "get_bus_counts", fake_counts)

    points = asyncio.run(build_series(None, SERVICE_DATE, settings=settings, now=SETTLED_NOW))

    times = [p.time for p in points]
    assert times == series_times(SERVICE_DATE, settings=settings, now=SETTLED_NOW)
    assert all(p.metrics.active_buses == service_time_to_seconds(p.time) for p in points)
    assert peak <= settings.series_concurrency


def test_one_failing_point_fails_the_series(settings, monkeypatch):
    async def fake_counts(engine, instant, *, settings, now=None):
        if instant.hour == 12:
            raise UpstreamQueryFailure("boom")
        return _metrics(1)

    monkeypatch.setattr(series_module, "get_bus_counts", fake_counts)

    with pytest.raises(UpstreamQueryFailure):
        asyncio.run(build_series(None, SERVICE_DATE, settings=settings, now=SETTLED_NOW))


def test_settled_day_series_fills_cache(engine, settings, seeded_schedule, seed):
    seed(
        trip("T1", hms(8, 0), hms(8, 30)),
        trip("OWL", hms(25, 0), hms(25, 40)),
        observation("4001", at(SERVICE_DATE, 8, 14), trip_id="T1", next_stop_id="S1"),
    )

    points = asyncio.run(build_series(engine, SERVICE_DATE, settings=settings, now=SETTLED_NOW))

    by_time = {p.time: p.metrics for p in points}
    assert by_time["08:15:00"].trips_scheduled == 1
    assert by_time["08:15:00"].active_buses == 1
    assert by_time["25:15:00"].trips_never_ran == 1
    assert by_time["12:00:00"].trips_scheduled == 0

    assert asyncio.run(count_cached_snapshots(engine, SERVICE_DATE)) == 96
    assert asyncio.run(get_cached_snapshot(engine, SERVICE_DATE, "08:15:00")) == by_time["08:15:00"]
