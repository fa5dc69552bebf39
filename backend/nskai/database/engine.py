from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from nskai.config.settings import get_settings


settings = get_settings()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the async engine for direct Postgres, a pooler, or a local SQLite file.

    - Direct (docker-compose:5432): standard pool with pre-ping.
    - Poolers (Neon / Supabase, ``.pooler.`` hosts): small pool, no prepared statements.
    - SQLite (tests, local demos): driver defaults, no pool tuning.
    """
    database_url = database_url or settings.DATABASE_URL

    if database_url.startswith("sqlite"):
        sqlite_engine = create_async_engine(database_url, echo=False)
        event.listen(sqlite_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine

    # Heuristic: hosted pooler URLs contain ".pooler." or a provider domain
    using_pooler = ".pooler." in database_url or ".neon." in database_url or ".supabase." in database_url

    if using_pooler:
        # Session pooler: keep pool small (each connection holds a backend)
        pool_size = 3
        max_overflow = 2
        pool_recycle = 1800  # ~30m
        connect_args = {"connect_timeout": 10, "prepare_threshold": None}
    else:
        pool_size = 10
        max_overflow = 10
        pool_recycle = 3600  # ~1h
        connect_args = {"connect_timeout": 10}

    return create_async_engine(
        database_url,
        echo=False,  # Set True for SQL debugging
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        pool_use_lifo=True,
        connect_args=connect_args,
    )


engine: AsyncEngine = create_app_engine()
