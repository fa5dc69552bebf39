"""Errors raised while resolving the caller's Clerk session."""

from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """A session token was present but could not be accepted (401)."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class TokenExpiredError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__(detail="Session token has expired")


class InvalidTokenError(AuthenticationError):
    def __init__(self, reason: str | None = None) -> None:
        super().__init__(detail=f"Invalid session token ({reason})" if reason else "Invalid session token")


class AuthConfigurationError(HTTPException):
    """AUTH_PROVIDER is unknown, or Clerk is selected without a verification key."""

    def __init__(self, provider: str, problem: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Authentication provider '{provider}' {problem}",
        )
