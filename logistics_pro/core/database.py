"""
Database configuration and session management

The Database handle owns the async engine and session factory. It is
constructed at process start (see main.lifespan), kept on app.state, and
disposed at shutdown. Every logical operation runs in one session/transaction.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from logistics_pro.core.config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine_options(settings: Settings) -> Dict[str, Any]:
    """
    Pool configuration per backend.

    SQLite gets a generous busy timeout so concurrent writers queue on the
    file lock instead of failing immediately.
    """
    if is_sqlite_url(settings.DATABASE_URL):
        return {"connect_args": {"timeout": 30}}

    if settings.ENVIRONMENT == "production":
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }

    return {
        "pool_size": 2,
        "max_overflow": 5,
        "pool_pre_ping": True,
    }


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Explicit store handle: engine + session factory."""

    def __init__(self, url: str, echo: bool = False, **engine_options: Any):
        self.url = url
        self.engine = create_async_engine(url, echo=echo, future=True, **engine_options)
        if is_sqlite_url(url):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.DATABASE_URL, echo=settings.DEBUG, **build_engine_options(settings))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        One transaction per block: commit on success, rollback on any error.

        Usage:
            async with database.session() as db:
                db.add(...)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        # Import models so they register with Base.metadata
        from logistics_pro import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    def pool_status(self) -> Optional[Dict[str, int]]:
        pool = self.engine.pool
        if not hasattr(pool, "checkedout"):
            return None
        return {
            "size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting async database sessions"""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
