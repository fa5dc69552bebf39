"""Auth middleware: resolves session claims once per request."""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

from nskai.auth.config import get_session_claims
from nskai.auth.context import AUTH_SKIP_PATHS
from nskai.auth.exceptions import AuthenticationError
from nskai.middleware.error_handlers import handle_authentication_errors


if TYPE_CHECKING:
    from fastapi import Request, Response


logger = logging.getLogger(__name__)


class AuthInjectionMiddleware(BaseHTTPMiddleware):
    """Inject ``request.state.claims`` (``None`` for anonymous callers).

    Invalid or expired tokens are answered with a 401 here because exception
    handlers do not see errors raised inside middleware.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Resolve claims for every non-skipped path."""
        path = request.url.path

        if any(path.startswith(skip) for skip in AUTH_SKIP_PATHS):
            request.state.claims = None
            return await call_next(request)

        try:
            claims = await get_session_claims(request)
        except AuthenticationError as e:
            logger.info("Auth error in middleware for %s: %s", path, type(e).__name__)
            return await handle_authentication_errors(request, e)

        request.state.claims = claims
        request.state.clerk_id = claims.clerk_id if claims else None
        return await call_next(request)
