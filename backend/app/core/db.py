from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import Settings

Base = declarative_base()


def make_engine(settings: Settings) -> AsyncEngine:
    """
    Async engine shared by every snapshot sub-query.

    The pool is the ceiling on concurrent round trips: a snapshot holds up to
    seven connections at once and the series builder keeps
    settings.series_concurrency snapshots in flight.
    """
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )
