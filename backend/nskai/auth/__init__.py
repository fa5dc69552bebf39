"""Authentication module exports."""

from nskai.auth.config import SessionClaims, SessionRole
from nskai.auth.context import (
    AUTH_SKIP_PATHS,
    AuthContext,
    CurrentAuth,
)


__all__ = [
    "AUTH_SKIP_PATHS",
    "AuthContext",
    "CurrentAuth",
    "SessionClaims",
    "SessionRole",
]
