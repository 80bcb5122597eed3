from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncConnection

from app.core.errors import NotFound
from app.models.gtfs_versions import GtfsVersion
from app.models.service_calendar import ServiceCalendar, ServiceCalendarDate
from app.schedule.service_time import SERVICE_DAY_ROLLOVER

# Python weekday(): Mon=0..Sun=6
_WEEKDAY_COLUMNS = (
    ServiceCalendar.monday,
    ServiceCalendar.tuesday,
    ServiceCalendar.wednesday,
    ServiceCalendar.thursday,
    ServiceCalendar.friday,
    ServiceCalendar.saturday,
    ServiceCalendar.sunday,
)


@dataclass(frozen=True)
class ServiceDay:
    service_date: date
    start: datetime
    end: datetime


def service_date_for(instant: datetime, tz: ZoneInfo) -> date:
    local = instant.astimezone(tz)
    if local.time() < SERVICE_DAY_ROLLOVER:
        return local.date() - timedelta(days=1)
    return local.date()


def is_current_service_day(service_date: date, now: datetime, tz: ZoneInfo) -> bool:
    return service_date == service_date_for(now, tz)


def is_settled_service_day(service_date: date, now: datetime, tz: ZoneInfo) -> bool:
    """
    A day is settled once it is older than yesterday's service day; until then
    late telemetry can still arrive and results must not be cached.
    """
    return service_date < service_date_for(now, tz) - timedelta(days=1)


def resolve_service_day_boundaries(service_date: date, padding: timedelta, tz: ZoneInfo) -> ServiceDay:
    """
    Local midnight of service_date minus padding, to the following midnight
    plus padding. The trailing pad absorbs trips scheduled past 24:00:00.
    """
    midnight = datetime.combine(service_date, time(0), tzinfo=tz)
    next_midnight = datetime.combine(service_date + timedelta(days=1), time(0), tzinfo=tz)
    return ServiceDay(
        service_date=service_date,
        start=midnight - padding,
        end=next_midnight + padding,
    )


async def resolve_timetable_version(conn: AsyncConnection, service_date: date) -> int:
    stmt = (
        select(GtfsVersion.gtfs_version)
        .where(GtfsVersion.start_date <= service_date)
        .where(or_(GtfsVersion.end_date.is_(None), GtfsVersion.end_date >= service_date))
        .order_by(GtfsVersion.start_date.desc(), GtfsVersion.gtfs_version.desc())
        .limit(1)
    )
    version: Optional[int] = (await conn.execute(stmt)).scalar_one_or_none()
    if version is None:
        raise NotFound(f"No GTFS version covers {service_date.isoformat()}")
    return version


async def resolve_active_service_ids(conn: AsyncConnection, gtfs_version: int, service_date: date) -> set[str]:
    """
    GTFS calendar rules: weekly pattern in calendar, then calendar_dates
    exceptions (1 = added, 2 = removed) for that exact date.
    """
    weekday_col = _WEEKDAY_COLUMNS[service_date.weekday()]

    regular = await conn.execute(
        select(ServiceCalendar.service_id)
        .where(ServiceCalendar.gtfs_version == gtfs_version)
        .where(ServiceCalendar.start_date <= service_date)
        .where(ServiceCalendar.end_date >= service_date)
        .where(weekday_col.is_(True))
    )
    service_ids = {r[0] for r in regular}

    exceptions = await conn.execute(
        select(ServiceCalendarDate.service_id, ServiceCalendarDate.exception_type)
        .where(ServiceCalendarDate.gtfs_version == gtfs_version)
        .where(ServiceCalendarDate.date == service_date)
    )
    for service_id, exception_type in exceptions:
        if exception_type == 1:
            service_ids.add(service_id)
        elif exception_type == 2:
            service_ids.discard(service_id)

    return service_ids
