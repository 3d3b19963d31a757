"""
Database engine and session scopes

One async engine per process. Request handlers get a session through the
get_db dependency; background jobs use get_db_session(). Both commit when the
block finishes cleanly and roll back when it raises.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from referral_api.core.config import settings


def pool_options(environment: str) -> Dict[str, Any]:
    """Connection pool sizing: configured limits in production, a small pool elsewhere."""
    if environment == "production":
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    return {"pool_size": 2, "max_overflow": 5, "pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **pool_options(settings.ENVIRONMENT),
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_session() -> AsyncIterator[AsyncSession]:
    """
    Session for code running outside a request, e.g. the expired token sweep.

        async with get_db_session() as db:
            await db.execute(...)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
