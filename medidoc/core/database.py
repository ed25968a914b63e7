"""Async SQLAlchemy engine, session factory and database client.

The engine is created by ``DatabaseClient`` at application startup rather
than at import time, so importing the package never opens a connection.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from medidoc.core.config import DatabaseSettings
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class DatabaseClient:
    """PostgreSQL database client owning the engine and session factory."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine
        self.session_maker = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, db_settings: DatabaseSettings) -> "DatabaseClient":
        """Build a client from database settings."""
        engine = create_async_engine(
            db_settings.url,
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            echo=db_settings.echo,
            # Disable prepared statement cache for PgBouncer compatibility
            connect_args={"statement_cache_size": 0},
        )
        return cls(engine)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session that is always closed on exit."""
        async with self.session_maker() as session:
            try:
                yield session
            finally:
                await session.close()

    async def disconnect(self) -> None:
        """Dispose of the engine and its pooled connections."""
        try:
            await self.engine.dispose()
            LOGGER.info("Database connection closed")
        except Exception as e:
            LOGGER.error(
                "Error closing database connection",
                exc_info=True,
                extra={"error": str(e)}
            )

    async def health_check(self) -> dict:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))

            return {
                "status": "healthy",
                "connected": True,
                "database": "postgresql",
                "latency_test": "passed" if val == 1 else "failed"
            }

        except Exception as e:
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {
                "status": "unhealthy",
                "connected": False,
                "error": str(e),
            }
