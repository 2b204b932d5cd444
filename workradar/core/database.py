"""Async engine and request-scoped sessions.

One engine per process, built from ``Settings.database_url``. Services commit
their own units of work, so the request dependency only rolls back whatever
a failed request left open.
"""

import logging
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from workradar.core.config import Settings, settings

logger = logging.getLogger(__name__)


def build_engine(app_settings: Settings) -> AsyncEngine:
    """Engine for the configured database; SQL is echoed at DEBUG level."""
    return create_async_engine(
        app_settings.database_url,
        echo=app_settings.log_level.upper() == "DEBUG",
        pool_pre_ping=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit."""
    return async_sessionmaker(bind, expire_on_commit=False)


engine = build_engine(settings)
async_session_factory = build_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency that provides one session per request."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.debug("Rolled back request session after an error")
            raise
