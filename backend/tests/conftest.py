import asyncio
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import Settings
from app.core.db import Base
from app.models.blocks import ScheduledTrip
from app.models.bus_count_snapshots import BusCountSnapshot  # noqa: F401 (registers table)
from app.models.canceled import CanceledTrip
from app.models.gtfs_versions import GtfsVersion
from app.models.job_runs import JobRun  # noqa: F401
from app.models.service_calendar import ServiceCalendar, ServiceCalendarDate  # noqa: F401
from app.models.vehicles import VehicleObservation

TZ = ZoneInfo("America/Toronto")

# Monday, well in the past relative to SETTLED_NOW
SERVICE_DATE = date(2026, 3, 2)
SETTLED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=TZ)


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite+aiosqlite://",
        timezone="America/Toronto",
        db_pool_size=5,
        db_max_overflow=0,
        series_concurrency=4,
        service_day_padding_minutes=180,
        cache_max_age_days=90,
        excluded_route_ids=("1-350", "2-354", "4-354"),
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


def at(d: date, hh: int, mm: int, ss: int = 0) -> datetime:
    return datetime.combine(d, time(hh, mm, ss), tzinfo=TZ)


def hms(hh: int, mm: int, ss: int = 0) -> int:
    return hh * 3600 + mm * 60 + ss


def trip(trip_id: str, start: int, end: int, *, route_id: str = "95", service_id: str = "WKDY", gtfs_version: int = 1):
    return ScheduledTrip(
        gtfs_version=gtfs_version,
        trip_id=trip_id,
        block_id=f"B-{trip_id}",
        route_id=route_id,
        route_direction=0,
        trip_headsign="Downtown",
        service_id=service_id,
        start_time=start,
        end_time=end,
    )


def observation(vehicle_id: str, when: datetime, *, trip_id=None, next_stop_id=None, delay_min=None):
    return VehicleObservation(
        id=vehicle_id,
        time=when,
        trip_id=trip_id,
        next_stop_id=next_stop_id,
        delay_min=delay_min,
    )


def cancellation(d: date, trip_id: str):
    return CanceledTrip(date=d, trip_id=trip_id, schedule_relationship=3)


def schedule_rows(*, gtfs_version: int = 1, start_date: date = date(2026, 1, 1)):
    """One open-ended GTFS version with a WKDY service running every day."""
    return [
        GtfsVersion(gtfs_version=gtfs_version, start_date=start_date, end_date=None),
        ServiceCalendar(
            gtfs_version=gtfs_version,
            service_id="WKDY",
            monday=True,
            tuesday=True,
            wednesday=True,
            thursday=True,
            friday=True,
            saturday=True,
            sunday=True,
            start_date=start_date,
            end_date=date(2027, 12, 31),
        ),
    ]


async def _create_all(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _seed(engine, rows):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as db:
        db.add_all(rows)
        await db.commit()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'buswatch.db'}", poolclass=NullPool)
    asyncio.run(_create_all(eng))
    yield eng
    asyncio.run(eng.dispose())


@pytest.fixture
def seed(engine):
    def _seed_rows(*rows):
        asyncio.run(_seed(engine, list(rows)))

    return _seed_rows


@pytest.fixture
def seeded_schedule(seed):
    seed(*schedule_rows())
