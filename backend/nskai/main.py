import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv


# Load .env FIRST before any other imports that might need env vars
BACKEND_DIR = Path(__file__).parent.parent
ENV_PATH = BACKEND_DIR / ".env"
load_dotenv(ENV_PATH)

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import DatabaseError, IntegrityError, OperationalError
from starlette.requests import Request
from starlette.responses import Response

from nskai.analytics.router import router as analytics_router
from nskai.auth.config import validate_auth_on_startup
from nskai.auth.exceptions import AuthenticationError
from nskai.auth.middleware import AuthInjectionMiddleware
from nskai.certificates.router import router as certificates_router
from nskai.config.logging import setup_logging
from nskai.config.settings import get_settings
from nskai.courses.router import router as courses_router
from nskai.database.engine import engine
from nskai.database.init import init_database_with_retry
from nskai.exceptions import ValidationError as DomainValidationError, WebhookVerificationError
from nskai.gamification.router import router as gamification_router
from nskai.learning_paths.router import router as learning_paths_router
from nskai.middleware.error_handlers import (
    ActionFailedError,
    ErrorCategory,
    ErrorCode,
    ExternalServiceError,
    format_error_response,
    handle_action_errors,
    handle_authentication_errors,
    handle_database_errors,
    handle_external_service_errors,
    handle_validation_errors,
    handle_webhook_verification_errors,
    log_error_context,
)
from nskai.middleware.security import SimpleSecurityMiddleware, api_route_limit, limiter
from nskai.moderation.router import router as moderation_router
from nskai.payments.router import router as payments_router, webhook_router as paystack_webhook_router
from nskai.progress.router import router as progress_router
from nskai.qa.router import router as qa_router
from nskai.quiz.router import router as quiz_router
from nskai.reviews.router import router as reviews_router
from nskai.users.router import router as users_router, webhook_router as clerk_webhook_router
from nskai.videos.router import router as videos_router, webhook_router as mux_webhook_router


setup_logging()
logger = logging.getLogger(__name__)


def _register_routers(app: FastAPI) -> None:
    """Register all application routers."""
    api_limited = [Depends(api_route_limit)]

    # Catalog, authoring and moderation
    app.include_router(courses_router, dependencies=api_limited)
    app.include_router(moderation_router, dependencies=api_limited)
    app.include_router(learning_paths_router, dependencies=api_limited)
    app.include_router(reviews_router, dependencies=api_limited)

    # Learning
    app.include_router(progress_router, dependencies=api_limited)
    app.include_router(quiz_router, dependencies=api_limited)
    app.include_router(gamification_router, dependencies=api_limited)
    app.include_router(qa_router, dependencies=api_limited)
    app.include_router(certificates_router, dependencies=api_limited)

    # Accounts, money and media
    app.include_router(users_router, dependencies=api_limited)
    app.include_router(analytics_router, dependencies=api_limited)
    app.include_router(payments_router)
    app.include_router(videos_router, dependencies=api_limited)

    # Webhooks verify their own signatures and are never rate limited
    app.include_router(clerk_webhook_router)
    app.include_router(paystack_webhook_router)
    app.include_router(mux_webhook_router)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 carrying an error id that also appears in the logs."""
    error_id = uuid4()
    log_error_context(request, exc, error_id)

    return format_error_response(
        category=ErrorCategory.INTERNAL,
        code=ErrorCode.INTERNAL,
        detail="An unexpected error occurred",
        status_code=500,
        metadata={"error_id": str(error_id)},
        suggestions=["Please try again later", "If the problem persists, contact support with the error ID"],
    )


# Starlette matches a raised exception to the nearest registered class in its MRO
EXCEPTION_HANDLERS: list[tuple[type[Exception], Callable[..., Awaitable[Response]]]] = [
    (ActionFailedError, handle_action_errors),
    (AuthenticationError, handle_authentication_errors),
    (WebhookVerificationError, handle_webhook_verification_errors),
    (RequestValidationError, handle_validation_errors),
    (ValidationError, handle_validation_errors),
    (DomainValidationError, handle_validation_errors),
    (IntegrityError, handle_database_errors),
    (OperationalError, handle_database_errors),
    (DatabaseError, handle_database_errors),
    (ExternalServiceError, handle_external_service_errors),
    (RateLimitExceeded, _rate_limit_exceeded_handler),
    (Exception, _unhandled_error),
]


def _register_exception_handlers(app: FastAPI) -> None:
    for exc_class, handler in EXCEPTION_HANDLERS:
        app.add_exception_handler(exc_class, handler)


async def _shutdown_cleanup() -> None:
    """Clean up resources on shutdown."""
    logger.info("Starting graceful shutdown...")
    try:
        await engine.dispose()
        logger.info("Database engine disposed successfully")
    except Exception as e:
        logger.warning(f"Error disposing database engine: {e}")
    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    validate_auth_on_startup()
    await init_database_with_retry(engine)

    yield

    await _shutdown_cleanup()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    try:
        settings = get_settings()
    except Exception:
        logger.exception("Failed to load settings")
        raise

    app = FastAPI(
        title="NSKAI Marketplace API",
        description="Course marketplace: authoring, moderation, payments and learning progress",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan if settings.ENVIRONMENT != "test" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SimpleSecurityMiddleware)

    app.state.limiter = limiter

    app.add_middleware(AuthInjectionMiddleware)

    _register_exception_handlers(app)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check application health status."""
        return {"status": "healthy"}

    _register_routers(app)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    from nskai.config import env

    host = env("API_HOST", "127.0.0.1")
    port = int(env("API_PORT", "8080"))

    uvicorn.run(app, host=host, port=port)
