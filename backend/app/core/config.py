import os
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo

DEFAULT_EXCLUDED_ROUTE_IDS = "1-350,2-354,4-354"


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone: str

    db_pool_size: int
    db_max_overflow: int
    series_concurrency: int

    service_day_padding_minutes: int
    cache_max_age_days: int

    # non-revenue routes (garage pull-ins etc.) left out of every trip count
    excluded_route_ids: tuple[str, ...]

    log_level: str

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _split_ids(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "postgresql+asyncpg://localhost/buswatch"),
        timezone=os.getenv("TRANSIT_TIMEZONE", "America/Toronto"),
        db_pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
        db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
        series_concurrency=int(os.getenv("SERIES_CONCURRENCY", "4")),
        service_day_padding_minutes=int(os.getenv("SERVICE_DAY_PADDING_MINUTES", "180")),
        cache_max_age_days=int(os.getenv("CACHE_MAX_AGE_DAYS", "90")),
        excluded_route_ids=_split_ids(os.getenv("EXCLUDED_ROUTE_IDS", DEFAULT_EXCLUDED_ROUTE_IDS)),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
