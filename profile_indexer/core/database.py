"""Async SQLAlchemy engine, session factory and database client.

Each unit of work (a module run, a flow orchestration step) opens its own
session from ``async_session_maker``; no session is shared between units.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from profile_indexer.core.config import settings
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    future=True,
    # Disable prepared statement cache for PgBouncer compatibility
    connect_args={"statement_cache_size": 0},
)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that is closed when the caller is done with it."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


class DatabaseClient:
    """PostgreSQL database client with connection and schema management."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._connected = False

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            self._connected = True
            LOGGER.info("Database connection successful")
            return True
        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        await self.engine.dispose()
        self._connected = False
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create missing tables from the SQLAlchemy models (never drops)."""
        # Registers every model on Base.metadata
        from profile_indexer.database import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            LOGGER.info("Database tables created/verified successfully")
        except Exception as e:
            LOGGER.error("Failed to create database tables", exc_info=True, extra={"error": str(e)})
            raise

    async def health_check(self) -> dict:
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))
            self._connected = True
            return {"status": "healthy", "connected": True, "database": "postgresql", "latency_test": "passed" if val == 1 else "failed"}
        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = True) -> None:
    """Connect and optionally create missing tables."""
    LOGGER.info("Initializing database connection...")
    await db_client.connect()
    if create_tables:
        await db_client.create_tables()
    LOGGER.info("Database initialization completed")


async def close_database() -> None:
    LOGGER.info("Closing database connection...")
    await db_client.disconnect()
