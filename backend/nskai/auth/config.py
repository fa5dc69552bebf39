"""Session claim resolution for Clerk-issued session tokens."""

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import Any

import jwt
from fastapi import Request

from nskai.auth.exceptions import AuthConfigurationError, InvalidTokenError, TokenExpiredError
from nskai.config.settings import get_settings


logger = logging.getLogger(__name__)

_SESSION_COOKIE = "__session"
_CLOCK_SKEW_SECONDS = 5


class SessionRole(StrEnum):
    """Role claim carried in the session token metadata."""

    ORG_ADMIN = "ORG_ADMIN"
    TUTOR = "TUTOR"
    LEARNER = "LEARNER"


@dataclass(frozen=True)
class SessionClaims:
    """Identity extracted from a verified session token."""

    clerk_id: str
    role: SessionRole = SessionRole.LEARNER
    status: str | None = None


def _extract_token_from_request(request: Request) -> str | None:
    """Extract the session JWT from the Authorization header or the Clerk cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ").strip() or None

    return request.cookies.get(_SESSION_COOKIE)


@lru_cache
def _jwks_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url, cache_keys=True)


def _parse_role(raw: Any) -> SessionRole:
    # Absence (or anything unexpected) means LEARNER
    try:
        return SessionRole(str(raw)) if raw else SessionRole.LEARNER
    except ValueError:
        return SessionRole.LEARNER


def claims_from_payload(payload: dict[str, Any]) -> SessionClaims:
    """Map a decoded Clerk JWT payload onto ``SessionClaims``."""
    metadata = payload.get("metadata") or payload.get("public_metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    return SessionClaims(
        clerk_id=str(payload["sub"]),
        role=_parse_role(metadata.get("role")),
        status=metadata.get("status"),
    )


async def verify_clerk_token(token: str) -> dict[str, Any]:
    """Verify a Clerk session token and return its payload.

    A PEM key (``CLERK_JWT_KEY``) allows networkless verification; otherwise the
    signing key is fetched from ``CLERK_JWKS_URL``.
    """
    settings = get_settings()

    try:
        if settings.CLERK_JWT_KEY:
            key: Any = settings.CLERK_JWT_KEY
        elif settings.CLERK_JWKS_URL:
            signing_key = await asyncio.to_thread(
                _jwks_client(settings.CLERK_JWKS_URL).get_signing_key_from_jwt, token
            )
            key = signing_key.key
        else:
            raise AuthConfigurationError("clerk", "has no CLERK_JWT_KEY or CLERK_JWKS_URL")

        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            leeway=_CLOCK_SKEW_SECONDS,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        logger.debug("Session token expired - client should refresh")
        raise TokenExpiredError from e
    except (jwt.InvalidTokenError, jwt.PyJWKClientError) as e:
        logger.warning("Session token rejected: %s", type(e).__name__)
        raise InvalidTokenError(type(e).__name__) from e


async def get_session_claims(request: Request) -> SessionClaims | None:
    """Resolve the caller's session claims.

    Dev mode (``AUTH_PROVIDER="none"``): always the configured local user.
    Clerk mode: ``None`` for anonymous requests, verified claims otherwise; a
    present-but-invalid token is rejected rather than treated as anonymous.
    """
    settings = get_settings()

    if settings.AUTH_PROVIDER == "none":
        if settings.ENVIRONMENT == "production":
            logger.error("AUTH_PROVIDER='none' is not allowed in production!")
            error_msg = "Single-user mode (AUTH_PROVIDER='none') is not allowed in production. Use Clerk."
            raise ValueError(error_msg)
        return SessionClaims(clerk_id=settings.DEV_CLERK_ID, role=_parse_role(settings.DEV_ROLE), status="ACTIVE")

    if settings.AUTH_PROVIDER == "clerk":
        token = _extract_token_from_request(request)
        if not token:
            return None
        payload = await verify_clerk_token(token)
        return claims_from_payload(payload)

    logger.error("Unknown auth provider: %s", settings.AUTH_PROVIDER)
    raise AuthConfigurationError(settings.AUTH_PROVIDER, "is not supported")


def validate_auth_on_startup() -> None:
    """Fail fast on auth settings that cannot work."""
    settings = get_settings()
    provider = settings.AUTH_PROVIDER.lower()

    if provider not in ("none", "clerk"):
        msg = f"Invalid AUTH_PROVIDER: {provider}. Must be 'none' or 'clerk'"
        raise ValueError(msg)

    if provider == "none" and settings.ENVIRONMENT == "production":
        msg = "AUTH_PROVIDER='none' is not allowed in production"
        raise ValueError(msg)

    if provider == "clerk" and not (settings.CLERK_JWT_KEY or settings.CLERK_JWKS_URL):
        msg = "CLERK_JWT_KEY or CLERK_JWKS_URL is required when AUTH_PROVIDER=clerk"
        raise ValueError(msg)

    if provider == "clerk" and not settings.CLERK_SECRET_KEY.get_secret_value():
        logger.warning("CLERK_SECRET_KEY is not set - status changes will not be mirrored to Clerk")

    logger.info("Auth configuration validated (provider=%s)", provider)
