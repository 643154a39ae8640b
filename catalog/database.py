"""
Relational database utilities for async operations.
Handles engine lifecycle, schema creation and session handling for catalog data.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = structlog.get_logger(__name__)


class DatabaseManager:
    """
    Async SQLAlchemy manager for the catalog database.
    Owns the engine and the session factory used by the service layer.
    """

    def __init__(self, database_url: str, echo: bool = False, pool_size: Optional[int] = None):
        """
        Initialize database manager.

        Args:
            database_url: SQLAlchemy async connection URL
            echo: Log emitted SQL statements
            pool_size: Connection pool size (ignored for SQLite)
        """
        self.database_url = database_url
        self.echo = echo
        self.pool_size = pool_size
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        """Create the engine, verify connectivity and ensure tables exist."""
        engine_kwargs: Dict[str, Any] = {"echo": self.echo}
        if self.pool_size and not self.database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = self.pool_size
            engine_kwargs["pool_pre_ping"] = True

        try:
            self.engine = create_async_engine(self.database_url, **engine_kwargs)
            self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)

            logger.info("Successfully connected to database", url=self.engine.url.render_as_string())

        except SQLAlchemyError as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Disconnected from database")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, rolling back on error."""
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")

        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
