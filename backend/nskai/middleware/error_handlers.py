"""Centralized error handling system with proper categorization.

This module provides:
1. Error categories and codes shared by every router
2. Consistent error response formatting
3. Translation of service ``Result`` failures into HTTP responses
"""

import logging
from typing import Any, TypeVar
from uuid import UUID

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from nskai.core.result import ActionError, ErrorKind, Result


logger = logging.getLogger(__name__)

T = TypeVar("T")


# === Error Categories ===


class ErrorCategory:
    """Error category constants."""

    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    DATABASE = "DATABASE_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFLICT = "CONFLICT_ERROR"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    INTERNAL = "INTERNAL_ERROR"


class ErrorCode:
    """Specific error codes for better client handling."""

    # Auth errors
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"

    # Database errors
    DB_CONNECTION_FAILED = "DB_CONNECTION_FAILED"
    DB_UNIQUE_VIOLATION = "DB_UNIQUE_VIOLATION"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    # External service errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Rate limiting
    RATE_LIMITED = "RATE_LIMITED"

    # Internal errors
    INTERNAL = "INTERNAL_ERROR"


# === Custom Exception Classes ===


class ExternalServiceError(HTTPException):
    """External service (Clerk, Paystack, Mux, Resend) failed."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"{service} service error: {detail}")


class ActionFailedError(Exception):
    """Raised by routers to hand a failed service ``Result`` to the exception handler."""

    def __init__(self, error: ActionError) -> None:
        self.error = error
        super().__init__(error.message)


# Service error kind -> (category, default code, HTTP status)
_ACTION_ERROR_MAP: dict[ErrorKind, tuple[str, str, int]] = {
    ErrorKind.UNAUTHORIZED: (ErrorCategory.AUTHENTICATION, ErrorCode.AUTH_REQUIRED, status.HTTP_401_UNAUTHORIZED),
    ErrorKind.FORBIDDEN: (ErrorCategory.AUTHORIZATION, ErrorCode.PERMISSION_DENIED, status.HTTP_403_FORBIDDEN),
    ErrorKind.NOT_FOUND: (ErrorCategory.RESOURCE_NOT_FOUND, ErrorCode.NOT_FOUND, status.HTTP_404_NOT_FOUND),
    ErrorKind.CONFLICT: (ErrorCategory.CONFLICT, ErrorCode.ALREADY_EXISTS, status.HTTP_409_CONFLICT),
    ErrorKind.VALIDATION: (ErrorCategory.VALIDATION, ErrorCode.INVALID_INPUT, status.HTTP_400_BAD_REQUEST),
    ErrorKind.EXTERNAL_SERVICE: (
        ErrorCategory.EXTERNAL_SERVICE,
        ErrorCode.SERVICE_UNAVAILABLE,
        status.HTTP_502_BAD_GATEWAY,
    ),
    ErrorKind.INTERNAL: (ErrorCategory.INTERNAL, ErrorCode.INTERNAL, status.HTTP_500_INTERNAL_SERVER_ERROR),
}


def raise_for_result(result: Result[T]) -> T:
    """Return the value of a successful result or raise ``ActionFailedError``."""
    if result.error is not None:
        raise ActionFailedError(result.error)
    return result.value  # type: ignore[return-value]


# === Error Response Formatting ===


def format_error_response(
    category: str,
    code: str,
    detail: str,
    status_code: int,
    suggestions: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> JSONResponse:
    """Format a consistent error response."""
    content = {
        "error": {
            "category": category,
            "code": code,
            "detail": detail,
        }
    }

    if suggestions:
        content["error"]["suggestions"] = suggestions

    if metadata:
        content["error"]["metadata"] = metadata

    return JSONResponse(status_code=status_code, content=content)


async def handle_action_errors(request: Request, exc: ActionFailedError) -> JSONResponse:
    """Map a failed service result to its HTTP response."""
    error = exc.error
    category, default_code, status_code = _ACTION_ERROR_MAP[error.kind]
    if error.kind is ErrorKind.INTERNAL:
        logger.error(f"Action failed on {request.method} {request.url.path}: {error.message}")
    else:
        logger.info(f"Action rejected on {request.method} {request.url.path}: {error.kind} {error.message}")

    return format_error_response(
        category=category,
        code=error.code or default_code,
        detail=error.message,
        status_code=status_code,
    )


async def handle_authentication_errors(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle authentication failures (401)."""
    logger.warning(
        "Authentication failed for %s %s: %s",
        request.method,
        request.url.path,
        exc.detail,
        extra={"client_host": request.client.host if request.client else "unknown"},
    )
    return format_error_response(
        category=ErrorCategory.AUTHENTICATION,
        code=ErrorCode.AUTH_REQUIRED,
        detail=str(exc.detail),
        status_code=status.HTTP_401_UNAUTHORIZED,
        suggestions=["Ensure you are signed in", "Check if your session has expired"],
    )


async def handle_validation_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle validation errors from Pydantic and custom validators."""
    logger.info(f"Validation error on {request.method} {request.url.path}", extra={"error": str(exc)})

    if isinstance(exc, (PydanticValidationError, RequestValidationError)):
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append({"field": field, "message": error["msg"], "type": error["type"]})

        return format_error_response(
            category=ErrorCategory.VALIDATION,
            code=ErrorCode.INVALID_INPUT,
            detail="Invalid input data",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            metadata={"errors": errors},
        )
    # Custom validation error
    return format_error_response(
        category=ErrorCategory.VALIDATION,
        code=ErrorCode.INVALID_INPUT,
        detail=str(exc),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def handle_database_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle database-related errors that escaped the service layer."""
    logger.exception(
        f"Database error on {request.method} {request.url.path}: {exc}",
        extra={"error_type": type(exc).__name__},
        exc_info=(type(exc), exc, exc.__traceback__),
    )

    if isinstance(exc, IntegrityError) and "unique" in str(exc).lower():
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_UNIQUE_VIOLATION,
            detail="This resource already exists",
            status_code=status.HTTP_409_CONFLICT,
            suggestions=["Try using a different identifier"],
        )

    if isinstance(exc, OperationalError):
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_CONNECTION_FAILED,
            detail="Database connection error",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            suggestions=["Please try again later"],
        )

    return format_error_response(
        category=ErrorCategory.DATABASE,
        code=ErrorCode.INTERNAL,
        detail="A database error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def handle_external_service_errors(request: Request, exc: ExternalServiceError) -> JSONResponse:
    """Handle external service failures."""
    logger.error(f"External service error on {request.method} {request.url.path}: {exc.detail}")

    return format_error_response(
        category=ErrorCategory.EXTERNAL_SERVICE,
        code=ErrorCode.SERVICE_UNAVAILABLE,
        detail=exc.detail,
        status_code=exc.status_code,
        suggestions=["The service is temporarily unavailable", "Please try again later"],
    )


async def handle_webhook_verification_errors(request: Request, exc: Exception) -> JSONResponse:
    """Reject webhook deliveries whose signature does not verify (401)."""
    logger.warning(f"Webhook verification failed on {request.url.path}: {exc}")

    return format_error_response(
        category=ErrorCategory.AUTHENTICATION,
        code=ErrorCode.INVALID_SIGNATURE,
        detail=str(exc),
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


# === Utility Functions ===


def log_error_context(request: Request, exc: Exception, error_id: UUID | None = None) -> None:
    """Log comprehensive error context for debugging."""
    context = {
        "error_id": str(error_id) if error_id else None,
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else "unknown",
        "clerk_id": getattr(request.state, "clerk_id", None),
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    # Add request headers (excluding sensitive ones)
    safe_headers = {
        k: v for k, v in request.headers.items() if k.lower() not in ["authorization", "cookie", "x-api-key"]
    }
    context["headers"] = safe_headers

    logger.error("Request failed", extra=context, exc_info=exc)
