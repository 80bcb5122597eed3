"""
Bus count snapshot: reconcile the timetable against vehicle telemetry at one instant.

Metrics (all trip counts are over blocks visible for the service day, i.e.
the resolved GTFS version + active service ids, minus excluded routes):

  active_buses        = distinct vehicles reporting in (t - 2min, t + 2min)
  buses_on_routes     = of those, on a trip and either heading to a next stop
                        or on a block trip ending more than 10 min after t
  trips_scheduled     = start <= t < end
  trips_not_running   = start < t < end, no report for the trip near t
  trips_never_ran     = start < t < end, no report for the trip all service day
  trips_canceled      = start < t < end, trip cancelled for the date
  trips_still_running = end < t, still reporting a next stop near t

The trip categories overlap and do not sum to trips_scheduled. active_buses
also counts deadheading vehicles.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.core.errors import UpstreamQueryFailure
from app.counts.types import SnapshotMetrics
from app.models.blocks import ScheduledTrip
from app.models.canceled import CanceledTrip
from app.models.vehicles import VehicleObservation
from app.schedule.calendar import (
    resolve_active_service_ids,
    resolve_service_day_boundaries,
    resolve_timetable_version,
    service_date_for,
)
from app.schedule.service_time import instant_to_service_seconds, to_local

logger = logging.getLogger(__name__)

NEAR_WINDOW = timedelta(minutes=2)
ON_ROUTE_GRACE_SECONDS = 10 * 60

B = ScheduledTrip
V = VehicleObservation


def _visible_blocks(gtfs_version: int, service_ids: set[str], settings: Settings) -> list:
    return [
        B.gtfs_version == gtfs_version,
        B.service_id.in_(sorted(service_ids)),
        B.route_id.not_in(settings.excluded_route_ids),
    ]


def _reported(since: datetime, until: datetime, *extra):
    """Correlated EXISTS: the outer block's trip reported between since and until."""
    return (
        select(V.observation_id)
        .where(V.time > since, V.time < until, V.trip_id == B.trip_id, *extra)
        .exists()
    )


def build_snapshot_statements(
    *,
    gtfs_version: int,
    service_ids: set[str],
    service_date,
    now_s: int,
    before: datetime,
    after: datetime,
    day_start: datetime,
    day_end: datetime,
    settings: Settings,
) -> dict:
    visible = _visible_blocks(gtfs_version, service_ids, settings)
    in_progress = [*visible, B.start_time < now_s, B.end_time > now_s]

    on_route_trip = (
        select(B.trip_id)
        .where(*visible, B.trip_id == V.trip_id, B.end_time - ON_ROUTE_GRACE_SECONDS > now_s)
        .exists()
    )

    return {
        "active_buses": select(func.count(distinct(V.id))).where(V.time > before, V.time < after),
        "buses_on_routes": select(func.count(distinct(V.id))).where(
            V.time > before,
            V.time < after,
            V.trip_id.is_not(None),
            or_(V.next_stop_id.is_not(None), on_route_trip),
        ),
        "trips_scheduled": select(func.count())
        .select_from(B)
        .where(*visible, B.start_time <= now_s, B.end_time > now_s),
        "trips_not_running": select(func.count())
        .select_from(B)
        .where(*in_progress, ~_reported(before, after)),
        "trips_never_ran": select(func.count())
        .select_from(B)
        .where(*in_progress, ~_reported(day_start, day_end)),
        "trips_canceled": select(func.count())
        .select_from(B)
        .where(
            *in_progress,
            B.trip_id.in_(select(CanceledTrip.trip_id).where(CanceledTrip.date == service_date)),
        ),
        "trips_still_running": select(func.count())
        .select_from(B)
        .where(*visible, B.end_time < now_s, _reported(before, after, V.next_stop_id.is_not(None))),
    }


async def _count(engine: AsyncEngine, stmt) -> int:
    async with engine.connect() as conn:
        value = (await conn.execute(stmt)).scalar()
    # no rows / NULL aggregate is a valid zero
    return int(value or 0)


async def compute_snapshot(engine: AsyncEngine, instant: datetime, *, settings: Settings) -> SnapshotMetrics:
    """
    Compute the seven bus count metrics for instant, straight from the
    database (no cache). Raises NotFound when no GTFS version covers the
    service day and UpstreamQueryFailure when any sub-query fails.
    """
    tz = settings.tz
    instant = to_local(instant, tz)
    service_date = service_date_for(instant, tz)
    now_s = instant_to_service_seconds(instant, tz, extend_past_midnight=True)
    service_day = resolve_service_day_boundaries(
        service_date, timedelta(minutes=settings.service_day_padding_minutes), tz
    )

    try:
        async with engine.connect() as conn:
            gtfs_version = await resolve_timetable_version(conn, service_date)
            service_ids = await resolve_active_service_ids(conn, gtfs_version, service_date)
    except SQLAlchemyError as e:
        raise UpstreamQueryFailure(f"schedule lookup failed for {service_date.isoformat()}: {e!r}") from e

    before = instant - NEAR_WINDOW
    after = instant + NEAR_WINDOW
    # day window always contains the narrow window
    day_start = min(service_day.start, before)
    day_end = max(service_day.end, after)

    statements = build_snapshot_statements(
        gtfs_version=gtfs_version,
        service_ids=service_ids,
        service_date=service_date,
        now_s=now_s,
        before=before,
        after=after,
        day_start=day_start,
        day_end=day_end,
        settings=settings,
    )

    t0 = time.perf_counter()
    tasks = [asyncio.create_task(_count(engine, stmt)) for stmt in statements.values()]
    try:
        counts = await asyncio.gather(*tasks)
    except (SQLAlchemyError, OSError) as e:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise UpstreamQueryFailure(f"snapshot query failed at {instant.isoformat()}: {e!r}") from e

    metrics = SnapshotMetrics(**dict(zip(statements.keys(), counts)))
    logger.debug(
        "Snapshot %s (service_date=%s version=%s services=%d) computed in %.2fs: %s",
        instant.isoformat(),
        service_date.isoformat(),
        gtfs_version,
        len(service_ids),
        time.perf_counter() - t0,
        metrics,
    )
    return metrics
