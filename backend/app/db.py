from __future__ import annotations
from functools import lru_cache
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import DeclarativeBase
from app.config import settings
from app.errors import StoreUnavailable

class Base(DeclarativeBase):
    pass

def make_engine(url: str | None = None) -> AsyncEngine:
    url = url or settings.database_url
    if not url:
        raise StoreUnavailable("Store not configured")
    return create_async_engine(url, future=True, echo=False, pool_pre_ping=True)

@lru_cache(maxsize=1)
def _shared_engine(url: str) -> AsyncEngine:
    return make_engine(url)

def get_engine() -> AsyncEngine:
    """Process-wide engine for the configured DATABASE_URL."""
    if not settings.database_url:
        raise StoreUnavailable("Store not configured")
    return _shared_engine(settings.database_url)
