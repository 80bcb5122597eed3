from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.counts.cache import get_cached_snapshot, put_cached_snapshot
from app.counts.snapshot import compute_snapshot
from app.counts.types import SnapshotMetrics
from app.schedule.calendar import is_settled_service_day, service_date_for
from app.schedule.service_time import instant_to_service_time, to_local

logger = logging.getLogger(__name__)


async def get_bus_counts(
    engine: AsyncEngine,
    instant: datetime,
    *,
    settings: Settings,
    now: Optional[datetime] = None,
) -> SnapshotMetrics:
    """
    Read-through snapshot lookup.

    Settled service days: cache hit is returned as-is; on a miss the snapshot
    is computed and written back before returning. Live days (today,
    yesterday) are always computed and never written.
    """
    tz = settings.tz
    instant = to_local(instant, tz)
    now = to_local(now, tz) if now is not None else datetime.now(tz)

    service_date = service_date_for(instant, tz)
    service_time = instant_to_service_time(instant, tz, extend_past_midnight=True)

    if not is_settled_service_day(service_date, now, tz):
        return await compute_snapshot(engine, instant, settings=settings)

    cached = await get_cached_snapshot(engine, service_date, service_time)
    if cached is not None:
        logger.debug("Cache hit %s %s", service_date.isoformat(), service_time)
        return cached

    metrics = await compute_snapshot(engine, instant, settings=settings)
    await put_cached_snapshot(engine, service_date, service_time, metrics)
    return metrics
