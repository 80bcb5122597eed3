from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import get_settings
from app.core.db import make_engine


@lru_cache
def get_engine() -> AsyncEngine:
    return make_engine(get_settings())
