"""
Bus count snapshot cache: bus_count_snapshots keyed by (service_date, service_time).

Writes are INSERT .. ON CONFLICT DO UPDATE on the key, so recomputing a key
(concurrently or later with corrected data) converges on one row. There is
no TTL; callers only cache settled service days.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine

from app.counts.types import SnapshotMetrics
from app.models.bus_count_snapshots import BusCountSnapshot

METRIC_FIELDS = (
    "active_buses",
    "buses_on_routes",
    "trips_scheduled",
    "trips_not_running",
    "trips_never_ran",
    "trips_canceled",
    "trips_still_running",
)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def get_cached_snapshot(engine: AsyncEngine, service_date: date, service_time: str) -> Optional[SnapshotMetrics]:
    stmt = select(*(getattr(BusCountSnapshot, f) for f in METRIC_FIELDS)).where(
        BusCountSnapshot.service_date == service_date,
        BusCountSnapshot.service_time == service_time,
    )
    async with engine.connect() as conn:
        row = (await conn.execute(stmt)).mappings().one_or_none()

    if row is None:
        return None
    return SnapshotMetrics(**{f: int(row[f] or 0) for f in METRIC_FIELDS})


async def put_cached_snapshot(
    engine: AsyncEngine,
    service_date: date,
    service_time: str,
    metrics: SnapshotMetrics,
) -> None:
    insert = _INSERTS.get(engine.dialect.name)
    if insert is None:
        raise RuntimeError(f"No upsert support for dialect {engine.dialect.name!r}")

    values = metrics.as_dict()
    stmt = insert(BusCountSnapshot).values(service_date=service_date, service_time=service_time, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["service_date", "service_time"],
        set_={
            **{f: getattr(stmt.excluded, f) for f in METRIC_FIELDS},
            "computed_at": func.now(),
        },
    )

    async with engine.begin() as conn:
        await conn.execute(stmt)


async def count_cached_snapshots(engine: AsyncEngine, service_date: date) -> int:
    stmt = select(func.count()).select_from(BusCountSnapshot).where(BusCountSnapshot.service_date == service_date)
    async with engine.connect() as conn:
        return int((await conn.execute(stmt)).scalar() or 0)
