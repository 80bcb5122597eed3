"""
Per-trip reconciliation for one route on one service day.

Each visible trip of the route is reported next to what telemetry says
happened to it inside the padded service day:

  actual_start_time = first report for the trip (that report's vehicle is the bus)
  actual_end_time   = that bus's last report with a next stop, once the bus
                      has stopped reporting a next stop for the trip or the
                      report is more than 30 min old
  delay             = delay_min of that last on-route report
  canceled          = schedule_relationship from the cancellation feed
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.core.errors import UpstreamQueryFailure
from app.counts.types import TripDetails
from app.models.blocks import ScheduledTrip
from app.models.canceled import CanceledTrip
from app.models.vehicles import VehicleObservation
from app.schedule.calendar import (
    resolve_active_service_ids,
    resolve_service_day_boundaries,
    resolve_timetable_version,
)
from app.schedule.service_time import seconds_to_service_time, to_local

logger = logging.getLogger(__name__)

FINISHED_AFTER = timedelta(minutes=30)

B = ScheduledTrip
V = VehicleObservation


def _reconcile(trip, reports: list, relationship: Optional[int], now: datetime, tz) -> TripDetails:
    bus_id = reports[0].id if reports else None
    bus_reports = [r for r in reports if r.id == bus_id]
    on_route = [r for r in bus_reports if r.next_stop_id is not None]

    actual_start = to_local(bus_reports[0].time, tz) if bus_reports else None
    actual_end = None
    delay = None
    if on_route:
        last_on_route = on_route[-1]
        last_on_route_at = to_local(last_on_route.time, tz)
        delay = last_on_route.delay_min
        if bus_reports[-1].next_stop_id is None or now - last_on_route_at > FINISHED_AFTER:
            actual_end = last_on_route_at

    return TripDetails(
        trip_id=trip.trip_id,
        head_sign=trip.trip_headsign,
        route_direction=trip.route_direction,
        scheduled_start_time=seconds_to_service_time(trip.start_time),
        scheduled_end_time=seconds_to_service_time(trip.end_time),
        actual_start_time=actual_start,
        actual_end_time=actual_end,
        delay=delay,
        canceled=relationship,
        bus_id=bus_id,
        block_id=trip.block_id,
    )


async def get_route_details(
    engine: AsyncEngine,
    route_id: str,
    service_date: date,
    *,
    settings: Settings,
    now: Optional[datetime] = None,
) -> list[TripDetails]:
    """
    Trips of route_id visible on service_date, ordered by scheduled start.
    Raises NotFound when no GTFS version covers the day and
    UpstreamQueryFailure when a query fails.
    """
    tz = settings.tz
    now = to_local(now, tz) if now is not None else datetime.now(tz)
    service_day = resolve_service_day_boundaries(
        service_date, timedelta(minutes=settings.service_day_padding_minutes), tz
    )

    try:
        async with engine.connect() as conn:
            gtfs_version = await resolve_timetable_version(conn, service_date)
            service_ids = await resolve_active_service_ids(conn, gtfs_version, service_date)

            route_trips = [
                B.gtfs_version == gtfs_version,
                B.service_id.in_(sorted(service_ids)),
                B.route_id == route_id,
            ]
            trip_ids = select(B.trip_id).where(*route_trips)

            trips = (
                await conn.execute(
                    select(
                        B.trip_id,
                        B.trip_headsign,
                        B.route_direction,
                        B.start_time,
                        B.end_time,
                        B.block_id,
                    )
                    .where(*route_trips)
                    .order_by(B.start_time, B.trip_id)
                )
            ).all()

            reports = (
                await conn.execute(
                    select(V.id, V.time, V.trip_id, V.next_stop_id, V.delay_min)
                    .where(
                        V.time > service_day.start,
                        V.time < service_day.end,
                        V.trip_id.in_(trip_ids),
                    )
                    .order_by(V.time, V.observation_id)
                )
            ).all()

            canceled = (
                await conn.execute(
                    select(CanceledTrip.trip_id, CanceledTrip.schedule_relationship).where(
                        CanceledTrip.date == service_date,
                        CanceledTrip.trip_id.in_(trip_ids),
                    )
                )
            ).all()
    except SQLAlchemyError as e:
        raise UpstreamQueryFailure(
            f"route details failed for {route_id} on {service_date.isoformat()}: {e!r}"
        ) from e

    by_trip: dict[str, list] = {}
    for r in reports:
        by_trip.setdefault(r.trip_id, []).append(r)
    relationships = {trip_id: rel for trip_id, rel in canceled}

    details = [
        _reconcile(t, by_trip.get(t.trip_id, []), relationships.get(t.trip_id), now, tz)
        for t in trips
    ]
    logger.debug(
        "Route details %s %s: %d trips, %d reports",
        route_id,
        service_date.isoformat(),
        len(details),
        len(reports),
    )
    return details
