"""
Database Connection Management

Async SQLAlchemy 2.0 engine ownership for the relational store.
Implements session scoping, health checks, and graceful shutdown.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from marketplace.config.settings import DatabaseSettings
from marketplace.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Owns one async engine and its session factory.

    The instance belongs to the store that created it; nothing here is a
    module-level singleton.

    Example:
        db = Database(settings.database)
        async with db.session() as session:
            result = await session.execute(query)
        await db.close()
    """

    def __init__(self, settings: DatabaseSettings):
        self.settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get the database engine, creating it on first use.

        Returns:
            AsyncEngine: The active database engine
        """
        if self._engine is None:
            engine_config = {
                "echo": self.settings.echo,
                "pool_pre_ping": self.settings.pool_pre_ping,
            }
            # asyncpg pools internally; in-memory sqlite must keep its single connection
            if not self.settings.url.startswith("sqlite"):
                engine_config["poolclass"] = NullPool

            self._engine = create_async_engine(self.settings.url, **engine_config)
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info("Database engine created", url=self._engine.url.render_as_string(hide_password=True))
        return self._engine

    async def create_schema(self) -> None:
        """Create all tables (idempotent)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session.

        Context manager that provides a session and handles
        commit/rollback/close automatically.

        Yields:
            AsyncSession: Database session
        """
        if self._session_factory is None:
            logger.debug("Creating engine for first session")
            self.engine  # noqa: B018 - property builds the session factory
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed")

    async def check_health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }
