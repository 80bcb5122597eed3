"""
Cache pre-warm job: fill bus_count_snapshots for settled service days.

Walks every service date present in vehicles and, for each one that is
settled and still inside the retention window, builds the day's series
(which writes every point into the cache as a side effect).

Skipped:
  - any service day that is not settled yet (the current one and the one
    before it, which the read-through cache refuses to store)
  - yesterday by wall clock (late data / timezone edge at midnight)
  - days older than settings.cache_max_age_days

A day that fails is logged and counted; the job carries on with the rest.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy import Date, DateTime, cast, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.errors import PrewarmDayFailure
from app.counts.cache import count_cached_snapshots
from app.counts.series import build_series, series_times
from app.models.job_runs import JobRun
from app.models.vehicles import VehicleObservation
from app.schedule.calendar import is_settled_service_day
from app.schedule.service_time import SERVICE_DAY_ROLLOVER, to_local

logger = logging.getLogger(__name__)

JOB_NAME = "prewarm_bus_count_cache"
PROGRESS_EVERY = 10
_ROLLOVER = timedelta(hours=SERVICE_DAY_ROLLOVER.hour, minutes=SERVICE_DAY_ROLLOVER.minute)


@dataclass(frozen=True)
class PrewarmResult:
    days_seen: int
    warmed: int
    already_cached: int
    skipped: int
    failed: int


async def _start_job(db: AsyncSession, meta: dict) -> uuid.UUID:
    run_id = uuid.uuid4()
    jr = JobRun(run_id=run_id, job_name=JOB_NAME, status="running", meta=meta)
    db.add(jr)
    await db.commit()
    return run_id


async def _finish_job(db: AsyncSession, run_id: uuid.UUID, status: str, meta_updates: dict) -> None:
    jr = await db.get(JobRun, run_id)
    jr.status = status
    jr.ended_at = datetime.now(timezone.utc)
    jr.meta = {**(jr.meta or {}), **meta_updates}
    await db.commit()


def _service_date_column(dialect: str, settings: Settings):
    """
    vehicles.time as a service date: local wall clock in the transit timezone,
    shifted back by the rollover, truncated to a date.
    """
    V = VehicleObservation
    if dialect == "postgresql":
        local = func.timezone(settings.timezone, V.time, type_=DateTime)
        return cast(local - _ROLLOVER, Date)
    if dialect == "sqlite":
        # SQLite keeps the wall-clock time the row was written with
        return func.date(V.time, f"-{int(_ROLLOVER.total_seconds())} seconds", type_=Date)
    raise RuntimeError(f"Unsupported dialect for vehicle history: {dialect}")


async def list_observed_dates(engine: AsyncEngine, settings: Settings) -> list[date]:
    day = _service_date_column(engine.dialect.name, settings).label("day")
    stmt = select(day).distinct().order_by(day)
    async with engine.connect() as conn:
        return [r[0] for r in await conn.execute(stmt)]


async def prewarm_cache(
    engine: AsyncEngine,
    *,
    settings: Settings,
    now: Optional[datetime] = None,
    warm_day: Optional[Callable[[date], Awaitable[object]]] = None,
) -> PrewarmResult:
    tz = settings.tz
    now = to_local(now, tz) if now is not None else datetime.now(tz)

    yesterday = now.date() - timedelta(days=1)
    cutoff = now.date() - timedelta(days=settings.cache_max_age_days)

    if warm_day is None:
        async def warm_day(day: date):
            return await build_series(engine, day, settings=settings, now=now)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as db:
        run_id = await _start_job(
            db,
            {
                "now": now.isoformat(),
                "max_age_days": settings.cache_max_age_days,
                "cutoff": cutoff.isoformat(),
            },
        )

        try:
            days = await list_observed_dates(engine, settings)
            logger.info(
                "Cache pre-warm: checking %d days from vehicle history (max age: %d days)...",
                len(days),
                settings.cache_max_age_days,
            )

            warmed = 0
            skipped = 0
            already_cached = 0
            failed = 0

            for day in days:
                if not is_settled_service_day(day, now, tz) or day == yesterday or day < cutoff:
                    skipped += 1
                    continue

                expected = len(series_times(day, settings=settings, now=now))
                if expected and await count_cached_snapshots(engine, day) >= expected:
                    already_cached += 1
                    continue

                try:
                    await warm_day(day)
                except Exception as e:
                    failed += 1
                    logger.warning("Cache pre-warm: %s", PrewarmDayFailure(day, e))
                    continue

                warmed += 1
                if warmed % PROGRESS_EVERY == 0:
                    logger.info("Cache pre-warm: %d days completed...", warmed)

            result = PrewarmResult(
                days_seen=len(days),
                warmed=warmed,
                already_cached=already_cached,
                skipped=skipped,
                failed=failed,
            )
            logger.info(
                "Cache pre-warm: finished. Warmed: %d, Already cached: %d, Skipped: %d, Failed: %d",
                warmed,
                already_cached,
                skipped,
                failed,
            )
            await _finish_job(db, run_id, "success", {"result": asdict(result)})
            return result

        except Exception as e:
            await db.rollback()
            await _finish_job(db, run_id, "fail", {"error": repr(e)})
            raise
