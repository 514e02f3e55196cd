"""
ChampStep Backend — Database Session Management
=================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Transaction Boundary:
    One request = one transaction. Multi-step workflow writes (binding an
    identity and closing its claim request, recording a vouch and
    auto-approving) are flushed inside the same session and committed
    together by get_db_session(), so a failure between steps leaves nothing
    half-applied.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    options: dict = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        # SQLite drivers manage their own single-connection pool
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless each connection opts in."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _foreign_keys_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(settings.database_url, **_engine_options())
if settings.is_sqlite:
    enable_sqlite_foreign_keys(engine)

# expire_on_commit=False: response schemas read attributes after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/dancers")
        async def list_dancers(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Read Retry ────────────────────────────────────────────────────────────
def migration_options(url: str) -> dict:
    """Alembic context options shared by offline and online migrations."""
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        # SQLite cannot ALTER most columns; batch mode rebuilds the table
        "render_as_batch": url.startswith("sqlite"),
    }


# Connection-level failures only. Constraint violations and programming
# errors are never transient.
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


async def execute_read(session: AsyncSession, statement: Any):
    """
    Execute an idempotent SELECT with bounded retry.

    What:  Retries transient connection failures with exponential backoff.
    Why:   A dropped pooled connection should not fail a directory page load.
    How:   tenacity AsyncRetrying; the session is rolled back between attempts
           so the next try checks out a fresh connection.

    Never use this for writes: a retried write could apply twice.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(TRANSIENT_DB_ERRORS),
        stop=stop_after_attempt(settings.read_retry_attempts),
        wait=wait_exponential_jitter(
            initial=settings.read_retry_min_wait,
            max=settings.read_retry_max_wait,
            jitter=0.1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            try:
                return await session.execute(statement)
            except TRANSIENT_DB_ERRORS:
                await session.rollback()
                raise


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections; called from the lifespan shutdown."""
    await engine.dispose()
