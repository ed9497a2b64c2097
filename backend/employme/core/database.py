"""Async database engine and request-scoped sessions.

Transaction boundaries: one session per request. Routes that mutate state
commit explicitly before setting cookies, and get_db commits whatever is
left when the handler returns normally. Services never commit; they use
SAVEPOINTs (``session.begin_nested()``) where a unique violation must be
recovered from without losing the outer transaction.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from employme.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level.upper() == "DEBUG",
    pool_pre_ping=True,
)

# expire_on_commit=False: summaries built after commit must not reload rows
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; commit on success, roll back on any exception.

    Yields:
        AsyncSession bound to the application engine.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
