from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.counts.bus_counts import get_bus_counts
from app.counts.types import SeriesPoint
from app.schedule.calendar import service_date_for
from app.schedule.service_time import (
    add_to_service_time,
    seconds_since_service_day_start,
    seconds_to_service_time,
    service_time_diff,
    service_time_to_instant,
    to_local,
)

logger = logging.getLogger(__name__)

SERIES_START = "03:00:00"
SERIES_END = "27:00:00"
SERIES_STEP_SECONDS = 15 * 60

# the live day is only graphed up to this far behind now
LIVE_DAY_LAG = timedelta(minutes=15)


def series_times(service_date: date, *, settings: Settings, now: Optional[datetime] = None) -> list[str]:
    """
    Service times graphed for a day: every 15 minutes from 03:00:00 up to
    (excluding) 27:00:00, or up to now - 15 minutes on the current service
    day. Future days have no points.
    """
    tz = settings.tz
    now = to_local(now, tz) if now is not None else datetime.now(tz)
    current = service_date_for(now, tz)

    if service_date > current:
        return []

    end = SERIES_END
    if service_date == current:
        live_end = seconds_since_service_day_start(now - LIVE_DAY_LAG, service_date, tz)
        if live_end <= 0:
            return []
        end = seconds_to_service_time(live_end)
        if service_time_diff(end, SERIES_END) > 0:
            end = SERIES_END

    times: list[str] = []
    cur = SERIES_START
    while service_time_diff(end, cur) > 0:
        times.append(cur)
        cur = add_to_service_time(cur, SERIES_STEP_SECONDS)
    return times


async def build_series(
    engine: AsyncEngine,
    service_date: date,
    *,
    settings: Settings,
    now: Optional[datetime] = None,
) -> list[SeriesPoint]:
    """
    Bus counts for a whole service day at 15-minute resolution.

    Every point is requested at once, bounded by settings.series_concurrency
    snapshots in flight; the result is always in ascending time order. Any
    failing point fails the series.
    """
    tz = settings.tz
    now = to_local(now, tz) if now is not None else datetime.now(tz)
    times = series_times(service_date, settings=settings, now=now)
    semaphore = asyncio.Semaphore(max(1, settings.series_concurrency))

    async def one(service_time: str):
        async with semaphore:
            instant = service_time_to_instant(service_date, service_time, tz)
            return await get_bus_counts(engine, instant, settings=settings, now=now)

    tasks = [asyncio.create_task(one(t)) for t in times]
    try:
        results = await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.debug("Series %s: %d points", service_date.isoformat(), len(times))
    return [SeriesPoint(time=t, metrics=m) for t, m in zip(times, results)]
