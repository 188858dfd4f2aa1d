"""Database connection and session management.

Uses lazy initialization to ensure the engine is created within
the correct event loop context, avoiding asyncpg event loop issues.

Tenant data lives in one Postgres schema per tenant (``tenant_<slug>``).
Tenant-scoped tables are declared without a schema and routed at execution
time with SQLAlchemy's ``schema_translate_map``. The global ``tenants`` table
is only queried through the untranslated engine, where it resolves through
the default ``public`` search path.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from oncall.config import settings

# Engine and session maker - lazily initialized
_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def tenant_schema(slug: str) -> str:
    """Return the Postgres schema holding a tenant's tables."""
    return f"tenant_{slug}"


def get_engine() -> AsyncEngine:
    """Get or create the database engine.

    When testing=True, uses NullPool to avoid event loop issues
    with connection pooling across different test event loops.
    """
    global _engine
    if _engine is None:
        if settings.testing:
            _engine = create_async_engine(
                settings.database_url,
                echo=settings.log_format == "text",
                poolclass=NullPool,
            )
        else:
            _engine = create_async_engine(
                settings.database_url,
                echo=settings.log_format == "text",
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
            )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the session maker for global (non-tenant) tables."""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


def tenant_session_maker(
    engine: AsyncEngine,
    schema: str | None,
) -> async_sessionmaker[AsyncSession]:
    """Build a session maker whose unqualified tables resolve to ``schema``.

    Passing ``schema=None`` leaves table names untouched (single-schema
    deployments and tests).
    """
    bind = engine
    if schema is not None:
        bind = engine.execution_options(schema_translate_map={None: schema})
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def tenant_session(slug: str) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for a session scoped to one tenant's schema."""
    session_maker = tenant_session_maker(get_engine(), tenant_schema(slug))
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting global database sessions."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if the database is reachable.

    Returns:
        True if database is connected, False otherwise.
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception:
        return False


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
