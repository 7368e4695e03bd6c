"""
Async database manager for PostgreSQL with SQLAlchemy
- Engine and session factory owned by one manager
- Optional table creation on startup
- Per-request sessions for FastAPI
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
from okr_tracker.core.config import settings
from okr_tracker.models.base import Base

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions and schema setup."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def init(self, db_url: Optional[str] = None):
        """Create the engine and the session factory."""
        db_url = db_url or settings.DATABASE_URL
        engine_kwargs = {"pool_pre_ping": True, "echo": settings.DATABASE_ECHO}
        if db_url.startswith("postgresql"):
            engine_kwargs.update(
                pool_size=10,
                max_overflow=5,
                pool_timeout=30,
                pool_recycle=300,
                # pgbouncer in transaction mode cannot keep prepared statements
                connect_args={"prepared_statement_cache_size": 0},
            )
        self.engine = create_async_engine(db_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False
        )

        if settings.CREATE_TABLES_ON_STARTUP:
            async with self.engine.begin() as conn:
                await self._setup_database(conn)

    async def _setup_database(self, conn):
        """Register every model module and create missing tables."""
        await conn.execute(text("SELECT 1"))
        for model in settings.DB_MODELS:
            import_module(model)
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables ready: %s", sorted(Base.metadata.tables.keys()))

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for safe session handling"""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Cleanup connection pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

# Initialize session manager
session_manager = DatabaseSessionManager()

async def aget_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions
    Usage:
    @router.get("/")
    async def endpoint(db: AsyncSession = Depends(aget_db)):
        ...
    """
    async with session_manager.get_session() as session:
        yield session
