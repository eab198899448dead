"""Database engine and session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from app.core.config import settings
from app.core.exceptions import FaceMatchingError
from app.core.logging import get_logger
from app.infrastructure.database.models import Base
from app.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


def _enable_immediate_transactions(engine: AsyncEngine) -> None:
    """Make SQLite take the write lock when a transaction begins.

    pysqlite defers BEGIN until the first write, so two sessions that both read
    first deadlock on the lock upgrade and one fails with "database is locked".
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine for ``database_url`` (defaults to settings)."""
    url = database_url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            connect_args={"timeout": settings.SQLITE_BUSY_TIMEOUT},
        )
        _enable_immediate_transactions(engine)
        return engine

    return create_async_engine(
        url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT
    )


class Database:
    """Owns the engine and hands out sessions.

    Example:
        ```python
        database = Database("sqlite+aiosqlite:///./facematch.db")
        await database.create_all()

        async with database.session() as session:
            await session.execute(query)
            await session.commit()
        ```
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.engine = create_engine(database_url)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )

    async def create_all(self) -> None:
        """Create missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session.

        Yields:
            AsyncSession: Database session, rolled back if the block raises
        """
        session = self.session_factory()
        logger.debug("Creating new database session")
        try:
            yield session
        except FaceMatchingError:
            await session.rollback()
            raise
        except Exception as e:
            logger.error(
                "Database session error",
                error=str(e),
                exc_info=True
            )
            await session.rollback()
            raise
        finally:
            logger.debug("Closing database session")
            await session.close()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncGenerator[UnitOfWork, None]:
        """Open a session and run the block as one committed transaction."""
        async with self.session() as session:
            async with UnitOfWork(session) as uow:
                yield uow
