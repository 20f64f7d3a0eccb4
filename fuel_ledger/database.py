from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fuel_ledger.config import Settings


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores FOR UPDATE and the driver defers BEGIN until the first
    write, so the ledger balance check would otherwise race other writers.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take BEGIN over from the driver
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the async engine for the configured database."""
    url = settings.DATABASE_URL
    kwargs: dict = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        return create_async_engine(url, **kwargs)

    kwargs["connect_args"] = {"check_same_thread": False}
    if ":memory:" in url:
        # Every session must see the same in-memory database
        kwargs["poolclass"] = StaticPool
        return create_async_engine(url, **kwargs)

    engine = create_async_engine(url, **kwargs)
    _serialize_sqlite_writers(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables and the ledger lock row (dev and tests).

    Deployments run the Alembic migrations instead.
    """
    from fuel_ledger.models import (  # noqa: F401 - ensure models are registered
        Company,
        LedgerLock,
        RefreshToken,
        RevenueRealization,
        RevenueTarget,
        Transaction,
        User,
    )
    from fuel_ledger.models.base import Base
    from fuel_ledger.models.ledger_lock import STOCK_LOCK_NAME

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        result = await session.execute(
            select(LedgerLock).where(LedgerLock.name == STOCK_LOCK_NAME)
        )
        if result.scalar_one_or_none() is None:
            session.add(LedgerLock(name=STOCK_LOCK_NAME))
            await session.commit()


def get_settings(request: Request) -> Settings:
    """FastAPI dependency returning the settings the app was built with."""
    return request.app.state.settings
