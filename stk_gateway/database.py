"""Database engine and session management."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from stk_gateway.config import settings
from stk_gateway.models.payment import Base


def use_immediate_transactions(engine: AsyncEngine) -> AsyncEngine:
    """
    Make SQLite take the write lock when a transaction begins.

    With the driver's deferred BEGIN, two sessions racing to settle the same
    order fail with "database is locked" instead of queueing behind each other.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_async_engine(settings.database_url, echo=False)
if engine.dialect.name == "sqlite":
    use_immediate_transactions(engine)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create all tables. Safe to call multiple times (CREATE IF NOT EXISTS)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session
