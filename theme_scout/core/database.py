"""Async SQLAlchemy database setup."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from theme_scout.config import settings

logger = logging.getLogger(__name__)

_TRANSIENT_CONNECTION_MARKERS = (
    "connection was closed",
    "connection is closed",
    "connection reset",
    "underlying connection is closed",
)

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
    pool_recycle=300,  # Recycle connections every 5 min to avoid server-side timeouts
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def is_transient_connection_error(exc: BaseException) -> bool:
    """Return True when a DB error means the connection dropped underneath us."""
    if isinstance(exc, (InterfaceError, OperationalError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_CONNECTION_MARKERS)


def _has_pending_state(session: AsyncSession) -> bool:
    return bool(session.new or session.dirty or session.deleted)


async def rollback_read_only_transaction(session: AsyncSession, *, context: str) -> None:
    """Close an implicit read transaction so no connection idles in transaction.

    Commit is used instead of rollback so already-loaded attributes stay intact.
    Sessions holding pending writes are left alone.
    """
    if not session.in_transaction() or _has_pending_state(session):
        return
    try:
        await session.commit()
    except Exception as exc:
        if not is_transient_connection_error(exc):
            raise
        logger.debug(
            "Ignoring transient error while releasing read transaction",
            extra={"context": context, "error": repr(exc)},
        )


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.warning("Database session error, rolling back", extra={"error": repr(e)})
            try:
                await session.rollback()
            except Exception:
                logger.warning("Rollback also failed (connection likely closed)")
            raise


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections")
    await engine.dispose()
