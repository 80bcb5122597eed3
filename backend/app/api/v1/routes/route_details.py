from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api.v1.routes.bus_counts import parse_day
from app.api.v1.schemas.route_details import TripDetailsOut
from app.core.config import Settings, get_settings
from app.core.deps import get_engine
from app.core.errors import NotFound, UpstreamQueryFailure
from app.counts.route_details import get_route_details

router = APIRouter(tags=["route-details"])


@router.get("/route-details", response_model=list[TripDetailsOut])
async def get_route_details_for_day(
    route_id: str = Query(..., alias="routeId"),
    date_str: str = Query(..., alias="date", description="Service date YYYY-MM-DD"),
    engine: AsyncEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    try:
        service_date = parse_day(date_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")

    try:
        details = await get_route_details(engine, route_id, service_date, settings=settings)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamQueryFailure as e:
        raise HTTPException(status_code=502, detail=str(e))

    return [TripDetailsOut.from_details(d) for d in details]
