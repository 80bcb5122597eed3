from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api.v1.schemas.bus_counts import BusCounts, BusCountsAtTime
from app.core.config import Settings, get_settings
from app.core.deps import get_engine
from app.core.errors import NotFound, UpstreamQueryFailure
from app.counts.bus_counts import get_bus_counts
from app.counts.series import build_series

router = APIRouter(tags=["bus-counts"])


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value).date()


@router.get("/active-buses", response_model=BusCounts)
async def get_active_buses(
    date_str: str = Query(..., alias="date", description="ISO datetime, e.g. 2026-03-02T08:15:00"),
    engine: AsyncEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    try:
        instant = datetime.fromisoformat(date_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be an ISO datetime")

    try:
        metrics = await get_bus_counts(engine, instant, settings=settings)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamQueryFailure as e:
        raise HTTPException(status_code=502, detail=str(e))

    return BusCounts.from_metrics(metrics)


@router.get("/active-buses/graph", response_model=list[BusCountsAtTime])
async def get_active_buses_graph(
    date_str: str = Query(..., alias="date", description="Service date YYYY-MM-DD"),
    engine: AsyncEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    try:
        service_date = parse_day(date_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")

    try:
        points = await build_series(engine, service_date, settings=settings)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamQueryFailure as e:
        raise HTTPException(status_code=502, detail=str(e))

    return [BusCountsAtTime.from_point(p) for p in points]
