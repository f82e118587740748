"""
Async SQLAlchemy engine and session setup for the attempt store.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from exam_timer.logger import setup_logger

logger = setup_logger(__name__)


class Base(DeclarativeBase):
    pass


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the attempt store.

    Args:
        url: SQLAlchemy async URL (sqlite+aiosqlite, postgresql+asyncpg, ...)
        echo: Log emitted SQL

    Returns:
        AsyncEngine
    """
    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        _use_immediate_transactions(engine)
    return engine


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    # SQLite takes the write lock lazily, so two writers that both read first
    # can deadlock. Taking it at BEGIN makes concurrent writers queue instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("🗄️ Attempt store tables ready")
