# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy async engine, session factory, declarative base, and the FastAPI
dependency that provides a DB session per request.

Settings and per-user security counters gate authentication, so there is no
caching layer in front of the database: every read goes to the store.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from core.config import settings


def _engine_options(url: str) -> dict:
    # An in-memory SQLite database only lives as long as its one connection
    if url.startswith("sqlite") and ":memory:" in url:
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    # pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    async with SessionLocal() as db:
        yield db
