"""Shared fixtures: a throwaway SQLite database per test and API clients.

Testing Strategy:
1. Database: a fresh SQLite file (aiosqlite) per test, tables created from models
2. Authentication: AuthContext built directly from a factory-made user
3. External APIs (Clerk, Resend, Paystack, Mux): replaced with AsyncMock doubles
"""

import os


# Must be set before nskai settings are first loaded
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("AUTH_PROVIDER", "none")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-nskai.db")

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from nskai.auth.config import SessionRole
from nskai.auth.context import AuthContext, get_auth_context
from nskai.database.engine import create_app_engine
from nskai.database.init import init_database
from nskai.database.session import DbSession, get_db_session, make_session_maker
from nskai.main import app
from nskai.users.models import User, UserRole


TEST_CLIENT_HEADER = "X-Test-Client"

SESSION_ROLES = {
    UserRole.ADMIN: SessionRole.ORG_ADMIN,
    UserRole.TUTOR: SessionRole.TUTOR,
    UserRole.LEARNER: SessionRole.LEARNER,
}


def session_role_for(user: User) -> SessionRole:
    return SESSION_ROLES[user.role]


@pytest_asyncio.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_app_engine(f"sqlite+aiosqlite:///{tmp_path / 'nskai-test.db'}")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_maker(test_engine)


@pytest_asyncio.fixture
async def db_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def auth_for(db_session: AsyncSession) -> Callable[..., AuthContext]:
    """Build an AuthContext for a user (``None`` means anonymous)."""

    def _auth_for(user: User | None, role: SessionRole | None = None) -> AuthContext:
        if user is None:
            return AuthContext(clerk_id=None, session=db_session)
        return AuthContext(clerk_id=user.clerk_id, session=db_session, role=role or session_role_for(user))

    return _auth_for


@pytest.fixture
def notifier() -> AsyncMock:
    """Stand-in for ResendNotifier."""
    return AsyncMock()


@pytest.fixture
def identity() -> AsyncMock:
    """Stand-in for the Clerk metadata client."""
    return AsyncMock()


@pytest_asyncio.fixture
async def client_factory(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[Callable[..., Awaitable[httpx.AsyncClient]], None]:
    """Create API clients acting as a given user (or anonymously)."""
    clients: list[httpx.AsyncClient] = []
    identities: list[tuple[str | None, SessionRole]] = []

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    # One shared override; each client tags its requests so it keeps its own identity
    async def _override_auth(request: Request, session: DbSession) -> AuthContext:
        clerk_id, session_role = identities[int(request.headers[TEST_CLIENT_HEADER])]
        return AuthContext(clerk_id=clerk_id, session=session, role=session_role)

    async def _factory(user: User | None = None, role: SessionRole | None = None) -> httpx.AsyncClient:
        clerk_id = user.clerk_id if user is not None else None
        session_role = role or (session_role_for(user) if user is not None else SessionRole.LEARNER)
        identities.append((clerk_id, session_role))

        app.dependency_overrides[get_db_session] = _override_session
        app.dependency_overrides[get_auth_context] = _override_auth

        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://test",
            headers={TEST_CLIENT_HEADER: str(len(identities) - 1)},
        )
        clients.append(client)
        return client

    yield _factory

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()
