"""
LedgerFlow - Database Configuration

Async engine, session factory and declarative base. Services flush;
routers own the commit.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData

from ledgerflow.config import settings


# Stable constraint names across PostgreSQL and SQLite
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Declarative base shared by every LedgerFlow table."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _engine_options() -> dict:
    # SQLite (local runs) has no connection pool sizing
    if settings.database_url_async.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
    }


engine = create_async_engine(settings.database_url_async, **_engine_options())

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncSession:
    """Request-scoped session; the router decides when to commit."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """
    Dependency returning the session factory used by report builders.

    Builders run after the request has finished, so they open their own
    sessions instead of borrowing the request session.
    """
    return async_session_maker


async def init_db():
    """Create every table. Development and tests only."""
    import ledgerflow.models  # noqa: F401  registers every table on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose of the engine pool."""
    await engine.dispose()
