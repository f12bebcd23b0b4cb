"""Engine and session factory construction for the configured database."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from email_verifier.db import models  # noqa: F401
from email_verifier.db.base import Base


def normalize_database_url(url: str) -> str:
    """Plain `postgresql://` URLs are pointed at the asyncpg driver."""
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(normalize_database_url(database_url), future=True, echo=False)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the `verification_codes` table (and its indexes) if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
