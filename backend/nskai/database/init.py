"""Table creation at startup. There are no migrations: models are the schema."""

import asyncio
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

# Every model module must be imported so its tables are on Base.metadata
from nskai.courses.models import *  # noqa: F403
from nskai.gamification.models import *  # noqa: F403
from nskai.learning_paths.models import *  # noqa: F403
from nskai.payments.models import *  # noqa: F403
from nskai.progress.models import *  # noqa: F403
from nskai.qa.models import *  # noqa: F403
from nskai.reviews.models import *  # noqa: F403
from nskai.users.models import *  # noqa: F403

from .base import Base


logger = logging.getLogger(__name__)


async def init_database(db_engine: AsyncEngine) -> None:
    """Create any missing tables; existing tables are left untouched."""
    async with db_engine.begin() as conn:
        logger.info("Ensuring %d tables exist", len(Base.metadata.tables))
        await conn.run_sync(Base.metadata.create_all)


async def init_database_with_retry(db_engine: AsyncEngine, attempts: int = 5, initial_delay: float = 1.0) -> None:
    """Run ``init_database`` until the server accepts connections, doubling the wait each time.

    Raises the last ``OperationalError`` once ``attempts`` are used up.
    """
    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            await init_database(db_engine)
        except OperationalError:
            if attempt == attempts:
                logger.exception("Database still unreachable after %d attempts", attempts)
                raise
            logger.warning("Database not ready (attempt %d/%d), retrying in %.0fs", attempt, attempts, delay)
            await asyncio.sleep(delay)
            delay *= 2
        else:
            logger.info("Database schema ready")
            return
