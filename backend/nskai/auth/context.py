"""AuthContext and FastAPI dependencies for explicit caller identity.

Every service receives the caller as an ``AuthContext`` value instead of reaching
into ambient request state. The context pairs the verified session claims with an
AsyncSession and resolves the internal ``User`` row on first use.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from sqlalchemy import select

from nskai.auth.config import SessionClaims, SessionRole, get_session_claims
from nskai.core.result import ActionError, Result
from nskai.database.session import DbSession
from nskai.users.models import User, UserRole


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class AuthContext:
    """Request-scoped caller identity with role helpers.

    ``clerk_id`` is ``None`` for anonymous callers. The role comes from the
    session claims (absence means LEARNER); the DB row is only loaded when a
    helper needs the internal user id.
    """

    def __init__(
        self,
        clerk_id: str | None,
        session: AsyncSession,
        role: SessionRole = SessionRole.LEARNER,
        status: str | None = None,
    ) -> None:
        self.clerk_id = clerk_id
        self.session = session
        self.role = role
        self.status = status
        self._user: User | None = None

    @classmethod
    def from_claims(cls, claims: SessionClaims | None, session: AsyncSession) -> AuthContext:
        if claims is None:
            return cls(clerk_id=None, session=session)
        return cls(clerk_id=claims.clerk_id, session=session, role=claims.role, status=claims.status)

    @property
    def is_signed_in(self) -> bool:
        return self.clerk_id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_signed_in and self.role == SessionRole.ORG_ADMIN

    async def get_user(self) -> User | None:
        """Return the internal user row for the caller, cached per context."""
        if self.clerk_id is None:
            return None
        if self._user is None:
            result = await self.session.execute(select(User).where(User.clerk_id == self.clerk_id))
            self._user = result.scalar_one_or_none()
        return self._user

    def require_signed_in(self) -> Result[str]:
        if self.clerk_id is None:
            return Result.failure(ActionError.unauthorized())
        return Result.success(self.clerk_id)

    def require_admin(self) -> Result[str]:
        if self.clerk_id is None:
            return Result.failure(ActionError.unauthorized())
        if self.role != SessionRole.ORG_ADMIN:
            return Result.failure(ActionError.forbidden("Admin access required"))
        return Result.success(self.clerk_id)

    async def require_user(self) -> Result[User]:
        """Resolve the caller's internal user, failing when anonymous or not yet synced."""
        if self.clerk_id is None:
            return Result.failure(ActionError.unauthorized())
        user = await self.get_user()
        if user is None:
            return Result.failure(ActionError.not_found("User"))
        return Result.success(user)

    async def require_tutor(self) -> Result[User]:
        user_result = await self.require_user()
        if not user_result.ok:
            return user_result
        if user_result.value.role != UserRole.TUTOR:
            return Result.failure(ActionError.forbidden("Not a tutor"))
        return user_result

    def can_manage(self, user: User, owner_id: object) -> bool:
        """Owners and org admins may mutate a tutor-owned resource."""
        return owner_id == user.id or self.is_admin


async def get_auth_context(request: Request, session: DbSession) -> AuthContext:
    """Build an AuthContext for the current request.

    Uses the claims injected by the auth middleware when present.
    """
    if hasattr(request.state, "claims"):
        claims = request.state.claims
    else:
        claims = await get_session_claims(request)
    return AuthContext.from_claims(claims, session)


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]


# Paths that never carry a session (webhooks verify their own signatures)
AUTH_SKIP_PATHS: list[str] = [
    "/health",
    "/api/v1/webhooks/",
    "/docs",
    "/redoc",
    "/openapi.json",
]
