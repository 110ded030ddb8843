"""
Async SQLAlchemy engine + session factory for the community database.

The store is TiDB (wire-compatible with MySQL 5.7), reached through the
aiomysql driver. The engine is created once at startup and reused across
all requests. The recommendation engine only ever reads from it.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from dance_recs.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.sqlalchemy_url,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """
    FastAPI dependency for handlers that need more than one session,
    e.g. to score several domains concurrently (an AsyncSession must not be
    shared between concurrent tasks).
    """
    return AsyncSessionLocal
