import argparse
import asyncio
from dataclasses import replace

from app.core.config import Settings, load_settings
from app.core.db import make_engine
from app.core.logging_setup import configure_logging_if_needed
from app.jobs.prewarm.prewarm_cache import PrewarmResult, prewarm_cache


async def _run(settings: Settings) -> PrewarmResult:
    engine = make_engine(settings)
    try:
        return await prewarm_cache(engine, settings=settings)
    finally:
        await engine.dispose()


def main():
    p = argparse.ArgumentParser(description="Pre-populate bus_count_snapshots for settled service days")
    p.add_argument("--max-age-days", type=int, help="Override CACHE_MAX_AGE_DAYS (default 90)")
    args = p.parse_args()

    settings = load_settings()
    if args.max_age_days is not None:
        settings = replace(settings, cache_max_age_days=args.max_age_days)

    configure_logging_if_needed(settings.log_level)
    res = asyncio.run(_run(settings))
    print(res)


if __name__ == "__main__":
    main()
