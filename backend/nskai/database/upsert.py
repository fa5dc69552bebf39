"""Dialect-aware INSERT ... ON CONFLICT helpers."""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(session: AsyncSession, model: type[Any]) -> Any:
    """Return an ``insert`` construct supporting ``on_conflict_do_*`` for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
