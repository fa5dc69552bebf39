"""Response hardening headers and slowapi rate limits."""

from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from nskai.config.settings import get_settings


# In-memory rate limiter; disabled under tests so suites can hammer endpoints
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().ENVIRONMENT != "test")


class SimpleSecurityMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers to every response, API and webhook alike."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle request with security headers."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


# Rate limiting decorators (use on endpoints)
payment_rate_limit = limiter.limit("10/minute")  # Payment verification
upload_rate_limit = limiter.limit("20/minute")  # Video upload URLs
heartbeat_rate_limit = limiter.limit("5/minute")  # Watch-time heartbeats (one per ~60s)
api_rate_limit = limiter.limit("100/minute")  # General API calls


def create_rate_limit_dependency(
    limit_decorator: Callable[[Callable], Callable],
    name: str,
) -> Callable[[Request], Awaitable[None]]:
    """Create rate limit dependencies from decorators.

    This allows applying rate limits at router level without modifying functions.
    slowapi keys limits by function name, so each dependency gets its own ``name``.
    """

    async def rate_limited_dependency(request: Request) -> None:
        """Apply rate limiting to protect router endpoints."""

    rate_limited_dependency.__name__ = name
    rate_limited_dependency.__qualname__ = name
    return limit_decorator(rate_limited_dependency)


payment_route_limit = create_rate_limit_dependency(payment_rate_limit, "payment_route_limit")
upload_route_limit = create_rate_limit_dependency(upload_rate_limit, "upload_route_limit")
heartbeat_route_limit = create_rate_limit_dependency(heartbeat_rate_limit, "heartbeat_route_limit")
api_route_limit = create_rate_limit_dependency(api_rate_limit, "api_route_limit")
