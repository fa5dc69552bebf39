"""Request-scoped sessions. Services own commit and rollback."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from nskai.database.engine import engine


logger = logging.getLogger(__name__)


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions that keep attributes loaded after commit, so services can return committed rows."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async_session_maker = make_session_maker(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; roll back whatever a failed request left open."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            if session.in_transaction():
                logger.debug("Rolling back open transaction after request failure")
                await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
