"""Process-wide collaborators shared by the API, the cleanup task and the CLI."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator

from email_verifier.core.config import Settings
from email_verifier.services.email import Notifier, build_notifier
from email_verifier.services.rate_limit import RateLimiter
from email_verifier.services.store import MemoryVerificationStore, VerificationStore
from email_verifier.services.verification import VerificationService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


@dataclass
class ServiceContainer:
    """Owns the long-lived objects; stores that need a DB session are opened per use.

    The engine and session factory exist only for the database backend and are
    built from this container's own `settings`.
    """

    settings: Settings
    notifier: Notifier
    rate_limiter: RateLimiter
    memory_store: MemoryVerificationStore = field(default_factory=MemoryVerificationStore)
    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, config: Settings) -> "ServiceContainer":
        container = cls(
            settings=config,
            notifier=build_notifier(config),
            rate_limiter=RateLimiter(
                window_ms=config.RATE_LIMIT_WINDOW_MS,
                max_requests=config.RATE_LIMIT_MAX_REQUESTS,
            ),
        )
        if config.STORAGE_BACKEND == "database":
            from email_verifier.db.session import build_engine, build_session_factory

            container.engine = build_engine(config.DATABASE_URL)
            container.session_factory = build_session_factory(container.engine)
        return container

    async def create_tables(self) -> None:
        if self.engine is None:
            return
        from email_verifier.db.session import create_tables

        await create_tables(self.engine)

    async def dispose(self) -> None:
        """Close pooled database connections; a no-op for the memory backend."""
        if self.engine is not None:
            await self.engine.dispose()

    @asynccontextmanager
    async def open_store(self) -> AsyncIterator[VerificationStore]:
        if self.session_factory is None:
            yield self.memory_store
            return

        from email_verifier.db.repository import SQLAlchemyVerificationStore

        async with self.session_factory() as session:
            yield SQLAlchemyVerificationStore(session)

    def build_service(self, store: VerificationStore) -> VerificationService:
        return VerificationService(
            store=store,
            notifier=self.notifier,
            expiry_ms=self.settings.VERIFICATION_CODE_EXPIRY,
        )

    @asynccontextmanager
    async def open_service(self) -> AsyncIterator[VerificationService]:
        async with self.open_store() as store:
            yield self.build_service(store)
