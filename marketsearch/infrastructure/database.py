"""Database configuration and session management.

The store connection is process-wide state: one engine and one session
factory shared by every request. It is created lazily by the first caller,
and callers arriving while that first connection attempt is still in flight
wait on the same attempt instead of opening their own.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from marketsearch.domain.exceptions import StoreUnavailableError
from marketsearch.infrastructure.config import settings

logger = structlog.get_logger()

# Base class for models
Base = declarative_base()

SessionFactory = async_sessionmaker[AsyncSession]


class Database:
    """Lazily connected, shared database handle.

    Example usage:
        database = Database(settings.database_url)

        async with database.lease() as sessions:
            async with sessions() as session:
                await session.execute(...)

        await database.dispose()
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        pool_size: int = 10,
        connect_timeout: float = 5.0,
    ) -> None:
        """Initialize an unconnected database handle.

        Args:
            url: SQLAlchemy async database URL.
            echo: Whether to log emitted SQL.
            pool_size: Connection pool size (ignored for SQLite).
            connect_timeout: Seconds to wait when opening a connection.
        """
        self.url = url
        self.echo = echo
        self.pool_size = pool_size
        self.connect_timeout = connect_timeout

        self._engine: AsyncEngine | None = None
        self._session_factory: SessionFactory | None = None
        self._connecting: asyncio.Future[SessionFactory] | None = None
        self._refs = 0
        self._dispose_pending = False

    @property
    def is_connected(self) -> bool:
        """Whether the engine has been created and verified."""
        return self._session_factory is not None

    @property
    def engine(self) -> AsyncEngine | None:
        """The underlying engine, once connected."""
        return self._engine

    @property
    def active_leases(self) -> int:
        """Number of callers currently holding a lease."""
        return self._refs

    async def connect(self) -> SessionFactory:
        """Return the shared session factory, connecting on first use.

        Returns:
            Session factory bound to the shared engine.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        if self._session_factory is not None:
            return self._session_factory

        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._open())

        attempt = self._connecting
        try:
            # Shielded so one cancelled waiter does not abort the attempt for the others
            return await asyncio.shield(attempt)
        except Exception:
            if self._connecting is attempt:
                self._connecting = None
            raise

    async def _open(self) -> SessionFactory:
        """Create the engine and verify it with a round trip."""
        engine = self._create_engine()
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            await engine.dispose()
            logger.error(
                "Database connection failed",
                backend=make_url(self.url).get_backend_name(),
                error=str(e),
            )
            raise StoreUnavailableError("connect", str(e)) from e

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(
            "Database connected",
            backend=make_url(self.url).get_backend_name(),
        )
        return self._session_factory

    def _create_engine(self) -> AsyncEngine:
        """Build the async engine for the configured URL."""
        options: dict = {
            "echo": self.echo,
            "pool_pre_ping": True,
            "connect_args": {"timeout": self.connect_timeout},
        }
        if make_url(self.url).get_backend_name() != "sqlite":
            options["pool_size"] = self.pool_size
        return create_async_engine(self.url, **options)

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[SessionFactory]:
        """Hold a counted reference to the shared connection.

        Yields:
            Session factory bound to the shared engine.
        """
        self._refs += 1
        try:
            yield await self.connect()
        finally:
            self._refs -= 1
            if self._refs == 0 and self._dispose_pending:
                await self._close()

    async def ping(self) -> bool:
        """Check that the store answers a trivial query.

        Returns:
            True if the store is reachable.
        """
        try:
            async with self.lease() as sessions:
                async with sessions() as session:
                    await session.execute(text("SELECT 1"))
            return True
        except (StoreUnavailableError, SQLAlchemyError, OSError) as e:
            logger.warning("Database ping failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close the engine now, or once the last lease is released."""
        if self._refs > 0:
            logger.info("Database dispose deferred", active_leases=self._refs)
            self._dispose_pending = True
            return
        await self._close()

    async def _close(self) -> None:
        self._dispose_pending = False
        engine = self._engine
        self._engine = None
        self._session_factory = None
        self._connecting = None
        if engine is not None:
            await engine.dispose()
            logger.info("Database disposed")


database = Database(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    connect_timeout=settings.db_connect_timeout,
)


def get_database() -> Database:
    """Get the process-wide database handle.

    Returns:
        Shared Database instance.
    """
    return database
